from marshmallow import Schema, fields


class SessionOutSchema(Schema):
    """One refresh token record as shown to its owner (never the hash).

    `now` is the unix time `active` is judged against; the API passes the
    session service clock so the flag agrees with the store.
    """
    id = fields.Integer()
    issued_at = fields.Integer()
    expires_at = fields.Integer()
    revoked_at = fields.Integer(allow_none=True)
    is_revoked = fields.Boolean()
    user_agent = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)
    token_type = fields.String()
    active = fields.Method("get_active")

    def __init__(self, *args, now=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.now = now

    def get_active(self, obj):
        return obj.is_active(self.now)
