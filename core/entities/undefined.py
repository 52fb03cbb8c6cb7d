class _Undefined:
    """Маркер "значение не передано". Не сериализуется в JSON, поэтому запись с ним сохранить нельзя."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()
