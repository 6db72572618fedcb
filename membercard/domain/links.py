from enum import Enum


class LinkMethod(Enum):
    MANUAL = "manual"
    AUTO = "auto"
    DIRECT = "direct"
    SOCKET = "socket"


class Link:
    def __init__(self, line_user_id, account_username, link_method, is_active=True, linked_at=None, id=None):
        self.id = id
        self.line_user_id = line_user_id
        self.account_username = account_username
        self.link_method = link_method
        self.is_active = is_active
        self.linked_at = linked_at

    def to_dict(self) -> dict:
        return {
            "line_user_id": self.line_user_id,
            "account_username": self.account_username,
            "link_method": self.link_method,
            "is_active": self.is_active,
            "linked_at": self.linked_at,
        }
