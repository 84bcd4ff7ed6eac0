from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validates

from utils.validators import password_error_message, validate_email, validate_password


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _EmailMixin:
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data

    @validates("email")
    def validate_email_format(self, value, **kwargs):
        result = validate_email(value)
        if not result.is_valid:
            raise ValidationError(result.error)


class _StrongPasswordMixin:
    @validates("password")
    def validate_password_strength(self, value, **kwargs):
        result = validate_password(value)
        if not result.is_valid:
            raise ValidationError(password_error_message(result.errors))


class RegisterSchema(_EmailMixin, _StrongPasswordMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class LoginSchema(_EmailMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)
    returnRefreshToken = fields.Boolean(load_default=False)


class ForgotPasswordSchema(_EmailMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True)


class VerifyEmailSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    token = fields.String(required=True)


class ResetPasswordSchema(_StrongPasswordMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    token = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class AccessTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    accessToken = fields.String(required=True)
