"""
Unit tests for the demo submission script.
"""
import pytest
from unittest.mock import patch, Mock
import httpx

from tools.demo_webhook import build_submission, main, send_submission


def _response(status_code, body):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    return response


class TestSendSubmission:
    """Tests for send_submission."""

    @patch('tools.demo_webhook.httpx.post')
    def test_posts_with_token_header(self, mock_post):
        mock_post.return_value = _response(202, {'receipt_id': 1})
        payload = build_submission('jane@example.com', 'Jane', 'k-1')

        response = send_submission('http://localhost:8000/', 'secret', payload)

        assert response.status_code == 202
        call_args, call_kwargs = mock_post.call_args
        assert call_args[0] == 'http://localhost:8000/webhooks/lead-form/'
        assert call_kwargs['headers'] == {'X-Webhook-Token': 'secret'}
        assert call_kwargs['json']['idempotency_key'] == 'k-1'

    @patch('tools.demo_webhook.httpx.post')
    def test_network_error_propagates(self, mock_post):
        mock_post.side_effect = httpx.ConnectError('Connection refused')

        with pytest.raises(httpx.ConnectError):
            send_submission('http://localhost:8000', 'secret', {'email': 'a@example.com'})


class TestMain:

    @patch('tools.demo_webhook.httpx.post')
    def test_repeat_reuses_key(self, mock_post):
        mock_post.return_value = _response(202, {'receipt_id': 7})

        assert main(['--token', 'secret', '--repeat', '2', '--key', 'demo-1']) == 0

        keys = {call.kwargs['json']['idempotency_key'] for call in mock_post.call_args_list}
        assert keys == {'demo-1'}
        assert mock_post.call_count == 2

    @patch('tools.demo_webhook.httpx.post')
    def test_non_accepted_response_fails(self, mock_post):
        mock_post.return_value = _response(401, {'error': 'Unauthorized'})

        assert main(['--token', 'wrong']) == 1

    def test_generated_keys_differ(self):
        assert build_submission('a@example.com', 'A')['idempotency_key'] != \
            build_submission('a@example.com', 'A')['idempotency_key']
