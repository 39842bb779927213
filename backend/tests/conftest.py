import os, sys, pytest
# Ensure the backend directory is on path so 'tailorshop' can be imported without installing
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from tailorshop import create_app, get_db
from tailorshop.models.authz import Base
from tailorshop.services.seed import ensure_permissions, ensure_roles

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
    'CHAPA_SECRET_KEY': 'CHASECK_TEST-xxxxxxxx',
    'CHAPA_WEBHOOK_SECRET': '',
    'PUBLIC_BASE_URL': 'https://api.tailor.test',
    'FRONTEND_BASE_URL': 'https://shop.tailor.test',
    'DELIVERY_FEE_CENTS': 5000,
    'TESTING': True,
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(TEST_CONFIG)
    # After app and blueprints are registered, ensure all tables exist and roles are seeded
    with app.app_context():
        session = get_db()
        Base.metadata.create_all(session.get_bind())
        ensure_permissions(session)
        ensure_roles(session)
        session.commit()
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


class FakeChapa:
    """Stand-in for ChapaClient; records calls and returns canned provider replies."""

    def __init__(self):
        self.initialized = []
        self.verified = []
        self.init_error = None
        self.verify_error = None
        self.verify_reply = None

    def initialize(self, payload):
        self.initialized.append(payload)
        if self.init_error:
            raise self.init_error
        return {'checkout_url': f"https://checkout.chapa.test/{payload['tx_ref']}"}

    def verify(self, tx_ref):
        self.verified.append(tx_ref)
        if self.verify_error:
            raise self.verify_error
        if self.verify_reply is not None:
            return self.verify_reply
        return {'status': 'success', 'data': {'status': 'success', 'amount': '100.00',
                                              'first_name': 'Abebe', 'last_name': 'Kebede', 'tx_ref': tx_ref}}


@pytest.fixture()
def fake_chapa(app_instance, monkeypatch):
    fake = FakeChapa()
    monkeypatch.setitem(app_instance.extensions, 'chapa', fake)
    return fake
