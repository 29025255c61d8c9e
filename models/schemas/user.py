from marshmallow import Schema, fields, pre_load, EXCLUDE


class TokenRequestSchema(Schema):
    """Login body. Emptiness is checked by the session service (400, not 422)."""

    class Meta:
        unknown = EXCLUDE

    username = fields.String(load_default="")
    password = fields.String(load_default="", load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("username", "password"):
            if key in data and not isinstance(data[key], str):
                data[key] = ""
        if "username" in data:
            data["username"] = data["username"].strip()
        return data


class UserOutSchema(Schema):
    id = fields.Integer()
    username = fields.String()
    display_name = fields.String(allow_none=True)
    roles = fields.List(fields.String())


class UserDetailOutSchema(UserOutSchema):
    email = fields.String(allow_none=True)
    created_at = fields.Integer(allow_none=True)
