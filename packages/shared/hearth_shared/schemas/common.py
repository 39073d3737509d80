from enum import Enum


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"
    VISITOR = "VISITOR"


# Ordered list, most privileged first
ROLE_ORDER: list["Role"] = [
    Role.OWNER,
    Role.ADMIN,
    Role.MANAGER,
    Role.USER,
    Role.MEMBER,
    Role.VIEWER,
    Role.VISITOR,
]
