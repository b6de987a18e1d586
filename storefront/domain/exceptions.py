class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class ProductNotFoundError(DomainException):
    pass


class OrderNotFoundError(DomainException):
    pass


class InsufficientStockError(DomainException):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Недостаточно товара. Доступно: {available}, требуется: {required}")


class InsufficientInventoryError(DomainException):
    """Не хватает свободных единиц выдачи. Для вебхука это не ошибка, а отложенная выдача."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Недостаточно единиц выдачи. Свободно: {available}, требуется: {required}")


class InvalidOrderStateError(DomainException):
    pass


class UnknownTransactionStatusError(DomainException):
    pass


class InvalidSignatureError(DomainException):
    pass


class PaymentGatewayError(DomainException):
    pass


class StoreUnavailableError(DomainException):
    pass
