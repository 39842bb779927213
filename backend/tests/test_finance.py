import pytest
from tailorshop.services.finance import derive_state, cents_to_amount, amount_to_cents
from tailorshop.services.chapa import build_tx_ref, parse_order_id, split_name, verify_signature, payment_notes


@pytest.mark.parametrize('total,paid,remaining,status', [
    (10000, 0, 10000, 'pending'),
    (10000, 2500, 7500, 'partial'),
    (10000, 10000, 0, 'paid'),
    (10000, 12000, -2000, 'paid'),
    (0, 0, 0, 'pending'),
    (0, 500, -500, 'partial'),
])
def test_derive_state(total, paid, remaining, status):
    state = derive_state(total, paid)
    assert state.remaining_cents == remaining
    assert state.status == status


def test_amount_conversions():
    assert cents_to_amount(125050) == '1250.50'
    assert cents_to_amount(5) == '0.05'
    assert amount_to_cents('1250.50') == 125050
    assert amount_to_cents(100) == 10000
    assert amount_to_cents('0.005') == 1
    with pytest.raises(ValueError):
        amount_to_cents('abc')
    with pytest.raises(ValueError):
        amount_to_cents(None)


def test_tx_ref_round_trip():
    ref = build_tx_ref(42, now_ms=1700000000000)
    assert ref == '42-1700000000000'
    assert parse_order_id(ref) == 42
    assert parse_order_id('nohyphen') is None
    assert parse_order_id('abc-123') is None
    assert payment_notes(ref) == 'Chapa payment - 42-1700000000000'


def test_split_name():
    assert split_name('Abebe Kebede Alemu') == ('Abebe', 'Kebede')
    assert split_name('Abebe') == ('Abebe', '')


def test_verify_signature():
    import hashlib, hmac
    body = b'{"tx_ref":"1-2"}'
    sig = hmac.new(b'whsec', body, hashlib.sha256).hexdigest()
    assert verify_signature('whsec', body, sig)
    assert not verify_signature('whsec', body, 'deadbeef')
    assert not verify_signature('', body, sig)
    assert not verify_signature('whsec', body, None)
