"""Column type storing a str enum as its plain text value."""
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class EnumText(TypeDecorator):
    """Store a ``str`` enum member as TEXT and read it back as the member."""

    impl = String
    cache_ok = True

    def __init__(self, enum_class, length: int = 20, **kwargs):
        self.enum_class = enum_class
        super().__init__(length, **kwargs)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
