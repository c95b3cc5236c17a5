"""
API views for inbound webhook ingestion.
"""
import logging
import uuid
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from webhooks.config import get_ingestion_config
from webhooks.exceptions import InvalidPayload, Unauthorized
from webhooks.services.gate import accept_submission
from webhooks.tasks import process_delivery

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name='dispatch')
class LeadFormWebhookView(APIView):
    """
    Webhook endpoint for website lead form submissions.

    POST /webhooks/lead-form/
    - Checks the shared-secret header
    - Validates the payload shape
    - Deduplicates on the idempotency key
    - Stores the delivery and enqueues async processing
    - Returns 202 with the ledger id as receipt
    """

    # The shared secret is the only credential on this path.
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """
        Handle an incoming lead form submission.

        Returns:
            202 Accepted: new delivery queued, or duplicate of a known one
            401 Unauthorized: missing or invalid shared secret
            422 Unprocessable Entity: malformed JSON or invalid payload
            415 Unsupported Media Type: body is not JSON
            500 Internal Server Error: the delivery could not be recorded
        """
        # Generate correlation ID for request tracing
        correlation_id = str(uuid.uuid4())
        config = get_ingestion_config()

        try:
            receipt = accept_submission(
                data=lambda: request.data,
                provided_token=request.headers.get(config.token_header),
                config=config,
                enqueue=process_delivery.delay,
                headers={
                    'content-type': request.META.get('CONTENT_TYPE', ''),
                    'user-agent': request.META.get('HTTP_USER_AGENT', ''),
                    'x-forwarded-for': request.META.get('HTTP_X_FORWARDED_FOR', ''),
                    'remote-addr': request.META.get('REMOTE_ADDR', ''),
                },
            )

        except Unauthorized as e:
            logger.warning(f"Unauthorized webhook request: {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'error': 'Unauthorized',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_401_UNAUTHORIZED
            )

        except InvalidPayload as e:
            logger.info(
                f"Invalid webhook payload: {sorted(e.errors)}, "
                f"correlation_id={correlation_id}"
            )
            return Response(
                {
                    'errors': e.errors,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_422_UNPROCESSABLE_ENTITY
            )

        except ParseError as e:
            logger.warning(
                f"Malformed JSON payload: {e}, "
                f"correlation_id={correlation_id}"
            )
            return Response(
                {
                    'errors': {'non_field_errors': ['Malformed JSON.']},
                    'correlation_id': correlation_id
                },
                status=status.HTTP_422_UNPROCESSABLE_ENTITY
            )

        except UnsupportedMediaType as e:
            logger.warning(f"Unsupported content type: {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'error': 'Unsupported media type',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
            )

        except Exception as e:
            logger.error(
                f"Error accepting webhook request: {e}, "
                f"correlation_id={correlation_id}",
                exc_info=True
            )
            return Response(
                {
                    'error': 'Internal server error',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        if receipt.duplicate:
            return Response(
                {
                    'message': 'Webhook already processed',
                    'receipt_id': receipt.delivery_id,
                    'status': receipt.status,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_202_ACCEPTED
            )

        logger.info(f"Delivery {receipt.delivery_id} accepted, correlation_id={correlation_id}")
        return Response(
            {
                'message': 'Webhook received and queued for processing',
                'receipt_id': receipt.delivery_id,
                'correlation_id': correlation_id
            },
            status=status.HTTP_202_ACCEPTED
        )
