"""
Zap error taxonomy.

Every error aborts the whole zap operation; the unit of work restores all
staged state before the exception reaches the caller.
"""


class ZapError(Exception):
    """Базовое исключение для zap-операций."""
    pass


class InvalidToken(ZapError):
    """Токен не входит в пару пула/хранилища."""

    def __init__(self, token: str, token0: str = None, token1: str = None):
        self.token = token
        self.token0 = token0
        self.token1 = token1
        if token0 and token1:
            message = f"Token {token} is not part of pair {token0}/{token1}"
        else:
            message = f"Invalid token: {token}"
        super().__init__(message)


class SlippageExceeded(ZapError):
    """Итоговая ликвидность/выход ниже заданного минимума."""

    def __init__(self, actual: int, minimum: int, what: str = "output"):
        self.actual = actual
        self.minimum = minimum
        self.what = what
        super().__init__(f"Slippage exceeded: {what} {actual} < minimum {minimum}")


class TransferFailure(ZapError):
    """Перевод или approve токена завершился неудачей."""
    pass


class ArithmeticOverflow(ZapError):
    """Fixed-point intermediate left the uint256 range or divided by zero."""
    pass


class DustNotConverged(ZapError):
    """Dust loop hit its iteration bound with the residue still above threshold."""

    def __init__(self, token: str, remaining: int, iterations: int, threshold: int):
        self.token = token
        self.remaining = remaining
        self.iterations = iterations
        self.threshold = threshold
        super().__init__(
            f"Dust did not converge for {token}: {remaining} > {threshold} "
            f"after {iterations} iterations"
        )


class PoolStateUnavailable(ZapError):
    """Не удалось получить состояние пула (цена или границы тиков)."""
    pass


class VaultDepositRejected(ZapError):
    """Хранилище отклонило депозит или вывод (мин. суммы, неверное соотношение)."""
    pass
