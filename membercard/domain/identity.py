# Profile keys as sent by the LINE Front-end Framework / profile API
PROFILE_KEYS = {
    "displayName": "display_name",
    "pictureUrl": "picture_url",
    "statusMessage": "status_message",
    "language": "language",
}


def profile_fields(profile: dict | None) -> dict:
    """Map a LINE profile payload (camelCase or snake_case) onto identity columns."""
    if not profile:
        return {}
    fields = {}
    for key, value in profile.items():
        column = PROFILE_KEYS.get(key, key)
        if column in PROFILE_KEYS.values() and value is not None:
            fields[column] = value
    return fields


class Identity:
    def __init__(
        self,
        line_user_id,
        display_name=None,
        picture_url=None,
        status_message=None,
        language="th",
        is_linked=False,
        account_username=None,
        is_active=True,
        last_sync_at=None,
        created_at=None,
        updated_at=None,
    ):
        self.line_user_id = line_user_id
        self.display_name = display_name
        self.picture_url = picture_url
        self.status_message = status_message
        self.language = language
        self.is_linked = is_linked
        self.account_username = account_username
        self.is_active = is_active
        self.last_sync_at = last_sync_at
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> dict:
        return {
            "line_user_id": self.line_user_id,
            "display_name": self.display_name,
            "picture_url": self.picture_url,
            "language": self.language,
            "is_linked": self.is_linked,
            "account_username": self.account_username,
            "last_sync_at": self.last_sync_at,
        }
