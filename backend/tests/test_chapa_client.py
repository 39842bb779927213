import pytest
import requests

from tailorshop.services import chapa as chapa_mod
from tailorshop.services.chapa import ChapaClient, ChapaError


class CannedResponse:
    def __init__(self, status_code=200, body=None, text=''):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body


class Recorder:
    """Captures the outgoing call and replies with a canned response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _client():
    return ChapaClient('CHASECK_TEST-abc', base_url='https://api.chapa.test/v1/', timeout=5)


def test_initialize_sends_bearer_and_returns_data(monkeypatch):
    post = Recorder(CannedResponse(200, {'status': 'success', 'data': {'checkout_url': 'https://pay/x'}}))
    monkeypatch.setattr(chapa_mod.requests, 'post', post)
    data = _client().initialize({'tx_ref': '7-1', 'amount': '10.00'})
    assert data == {'checkout_url': 'https://pay/x'}
    url, kwargs = post.calls[0]
    assert url == 'https://api.chapa.test/v1/transaction/initialize'
    assert kwargs['headers']['Authorization'] == 'Bearer CHASECK_TEST-abc'
    assert kwargs['json'] == {'tx_ref': '7-1', 'amount': '10.00'}
    assert kwargs['timeout'] == 5


def test_missing_secret_key_is_not_configured(monkeypatch):
    post = Recorder(CannedResponse(200, {'status': 'success'}))
    monkeypatch.setattr(chapa_mod.requests, 'post', post)
    with pytest.raises(ChapaError) as exc:
        ChapaClient('').initialize({'tx_ref': '1-1'})
    assert exc.value.message == 'Payment gateway is not configured'
    assert post.calls == []


def test_initialize_failure_carries_provider_message(monkeypatch):
    body = {'status': 'failed', 'message': 'Invalid currency'}
    monkeypatch.setattr(chapa_mod.requests, 'post', Recorder(CannedResponse(400, body)))
    with pytest.raises(ChapaError) as exc:
        _client().initialize({'tx_ref': '1-1'})
    assert exc.value.message == 'Invalid currency'
    assert exc.value.status_code == 400
    assert exc.value.payload == body


def test_initialize_flattens_validation_messages(monkeypatch):
    body = {'status': 'failed', 'message': {'email': ['The email must be a valid email address.'],
                                            'amount': 'The amount is required.'}}
    monkeypatch.setattr(chapa_mod.requests, 'post', Recorder(CannedResponse(422, body)))
    with pytest.raises(ChapaError) as exc:
        _client().initialize({'tx_ref': '1-1'})
    assert exc.value.message == ('email: The email must be a valid email address.; '
                                 'amount: The amount is required.')


def test_initialize_non_json_reply(monkeypatch):
    monkeypatch.setattr(chapa_mod.requests, 'post', Recorder(CannedResponse(502, None, 'Bad Gateway')))
    with pytest.raises(ChapaError) as exc:
        _client().initialize({'tx_ref': '1-1'})
    assert exc.value.message == 'Payment initialization failed'


def test_initialize_network_error(monkeypatch):
    monkeypatch.setattr(chapa_mod.requests, 'post', Recorder(error=requests.ConnectionError('refused')))
    with pytest.raises(ChapaError) as exc:
        _client().initialize({'tx_ref': '1-1'})
    assert exc.value.message == 'Payment initialization failed'


def test_verify_returns_envelope(monkeypatch):
    envelope = {'status': 'success', 'data': {'status': 'success', 'amount': '100.00'}}
    get = Recorder(CannedResponse(200, envelope))
    monkeypatch.setattr(chapa_mod.requests, 'get', get)
    assert _client().verify('12-1700000000000') == envelope
    url, kwargs = get.calls[0]
    assert url == 'https://api.chapa.test/v1/transaction/verify/12-1700000000000'
    assert kwargs['headers'] == {'Authorization': 'Bearer CHASECK_TEST-abc'}


def test_verify_non_2xx(monkeypatch):
    body = {'status': 'failed', 'message': 'Invalid transaction or Transaction not found'}
    monkeypatch.setattr(chapa_mod.requests, 'get', Recorder(CannedResponse(404, body, 'not found')))
    with pytest.raises(ChapaError) as exc:
        _client().verify('1-1')
    assert exc.value.message == 'Payment verification failed'
    assert exc.value.status_code == 404
    assert exc.value.payload == body


def test_verify_network_error(monkeypatch):
    monkeypatch.setattr(chapa_mod.requests, 'get', Recorder(error=requests.Timeout('slow')))
    with pytest.raises(ChapaError) as exc:
        _client().verify('1-1')
    assert exc.value.message == 'Payment verification failed'
