import enum


class ContractStatus(str, enum.Enum):
    DRAFT = "draft"
    SIGNED = "signed"
    # Reserved for administrative use; never produced by the service
    LOCKED = "locked"


class LineItemType(str, enum.Enum):
    HEADER = "header"
    ITEM = "item"


class SignatureMode(str, enum.Enum):
    DRAWN = "drawn"
    TYPED = "typed"
