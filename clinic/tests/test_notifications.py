import requests

from clinic.services import notifications


class _TwilioReply:
    def __init__(self, payload=None, status_code=201):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        if self.payload is None:
            raise ValueError('No JSON object could be decoded')
        return self.payload


def _use_twilio(settings, monkeypatch, reply):
    settings.SMS_PROVIDER = 'twilio'
    settings.TWILIO_ACCOUNT_SID = 'AC123'
    settings.TWILIO_AUTH_TOKEN = 'secret'
    settings.TWILIO_FROM_NUMBER = '+15550001111'
    sent = []

    def post(url, data=None, timeout=None, auth=None):
        sent.append((url, data))
        return reply

    monkeypatch.setattr(notifications.requests, 'post', post)
    return sent


def test_twilio_send(settings, monkeypatch):
    sent = _use_twilio(settings, monkeypatch, _TwilioReply({'sid': 'SM1'}))
    result = notifications.send_sms('(11) 98765-4321', 'See you tomorrow')
    assert result.sent
    assert result.detail == 'SM1'
    assert sent[0][1]['To'] == '+5511987654321'


def test_twilio_reply_without_json_is_a_failed_send(settings, monkeypatch):
    _use_twilio(settings, monkeypatch, _TwilioReply(None))
    result = notifications.send_sms('11987654321', 'See you tomorrow')
    assert not result.sent


def test_twilio_http_error_is_a_failed_send(settings, monkeypatch):
    _use_twilio(settings, monkeypatch, _TwilioReply({'message': 'bad number'}, status_code=400))
    assert not notifications.send_sms('11987654321', 'See you tomorrow').sent
