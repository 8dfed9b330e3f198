"""
Errors — иерархия ошибок ядра

Все ошибки восстанавливаемые: вызывающий код обычно пересчитывает quote и
повторяет сделку, либо показывает ошибку пользователю. Ни одна из них не
фатальна для процесса.

Любая ошибка на шагах Fund/Carve/Apply оставляет состояние леджера и
funding units ровно таким, каким оно было до вызова.
"""


class SocialCoinError(Exception):
    """Базовая ошибка для всех операций ядра."""

    pass


class InvalidAmount(SocialCoinError, ValueError):
    """Нулевое или отрицательное количество units / target."""

    def __init__(self, name: str, value: int):
        self.name = name
        self.value = value
        super().__init__(f"{name} must be a positive integer, got {value}")


class InsufficientFunds(SocialCoinError):
    """
    Доступных funding units (или переданного платежа) не хватает до target.

    Attributes:
        available: Сумма, которую удалось собрать
        required: Требуемая сумма
    """

    def __init__(self, available: int, required: int, owner: str | None = None):
        self.available = available
        self.required = required
        self.owner = owner
        who = f" for {owner}" if owner is not None else ""
        super().__init__(
            f"Insufficient funds{who}: available {available}, required {required}"
        )


class InsufficientShares(SocialCoinError):
    """Продажа превышает holding трейдера."""

    def __init__(self, trader: str | None, subject: str, held: int, requested: int):
        self.trader = trader
        self.subject = subject
        self.held = held
        self.requested = requested
        if trader is None:
            message = f"Subject {subject} has supply {held}, cannot sell {requested}"
        else:
            message = f"Trader {trader} holds {held} shares of {subject}, cannot sell {requested}"
        super().__init__(message)


class NotActive(SocialCoinError):
    """Buy против субъекта, который ещё не выпустил первый share."""

    def __init__(self, subject: str):
        self.subject = subject
        super().__init__(f"Subject {subject} is not active (no shares issued yet)")


class LedgerConflict(SocialCoinError):
    """
    Нарушена сериализация apply на одном субъекте.

    Возникает, когда compare-and-set хранилища не прошёл (версия изменилась)
    или funding unit уже зарезервирован другой сделкой. Вызывающий код должен
    пересчитать quote и повторить.
    """

    pass


class Overflow(SocialCoinError, ArithmeticError):
    """Результат арифметики цены/комиссии вышел за пределы u64."""

    def __init__(self, operation: str, lhs: int, rhs: int):
        self.operation = operation
        self.lhs = lhs
        self.rhs = rhs
        super().__init__(f"u64 overflow in {operation}: {lhs}, {rhs}")


class PermissionDenied(SocialCoinError):
    """Операция запрещена для данного вызывающего (issue чужого токена, чужие units, не admin)."""

    pass


class LedgerInvariantViolation(SocialCoinError):
    """
    Критическое нарушение инварианта леджера.

    sum(holding) != supply, либо holders не совпадает с ключами с holding > 0.
    Означает ошибку в коде state machine, а не ошибку вызывающего.
    """

    pass
