class DomainException(Exception):
    pass


class OrderNotFoundError(DomainException):
    pass


class OrderStoreError(DomainException):
    pass


class PaymentGatewayError(DomainException):
    pass
