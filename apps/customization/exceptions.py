from rest_framework import status
from rest_framework.exceptions import APIException


class AuthenticationRequired(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "You must be signed in to submit a customization request."
    default_code = "authentication_required"


class CustomizationValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"
    default_code = "invalid"

    def __init__(self, field, message):
        self.field = field
        self.message = message
        super().__init__(detail={field: [message]})


class InvalidFileType(APIException):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_detail = "Unsupported design file type."
    default_code = "invalid_file_type"


class FileTooLarge(APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = "Design file is too large."
    default_code = "file_too_large"


class InvalidPaymentReference(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment reference does not match the pending payment."
    default_code = "invalid_payment_reference"


class PaymentIntentNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No pending payment was found for this account."
    default_code = "payment_intent_not_found"


class PaymentCancelled(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Payment was cancelled."
    default_code = "payment_cancelled"


class GatewayError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service is temporarily unavailable. Please try again."
    default_code = "gateway_error"
