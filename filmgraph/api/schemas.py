from ninja import Schema


def to_camel(string: str) -> str:
    first, *rest = string.split("_")
    return first + "".join(word.capitalize() for word in rest)


class CamelSchema(Schema):
    """
    Base schema whose JSON field names are camelCase while the Python
    attribute names stay snake_case
    """

    class Config(Schema.Config):
        alias_generator = to_camel
        populate_by_name = True
