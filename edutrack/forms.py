# FILE: edutrack/forms.py
"""
Shared plumbing for validating JSON request bodies with WTForms.

JSON objects are flattened into WTForms form data: camelCase keys become
snake_case field names, nested objects use the FormField prefix
(`address-street`) and arrays use the FieldList index (`subjects-0`).
"""
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from edutrack.exceptions import BadRequest, ValidationFailed
from edutrack.utils import camel_to_snake, snake_to_camel


def json_to_formdata(payload):
    formdata = MultiDict()

    def _walk(name, value):
        if isinstance(value, dict):
            for key, item in value.items():
                key = camel_to_snake(key)
                _walk(f'{name}-{key}' if name else key, item)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                _walk(f'{name}-{index}', item)
        elif isinstance(value, bool):
            formdata.add(name, 'true' if value else 'false')
        elif value is not None:
            formdata.add(name, str(value))

    _walk('', payload)
    return formdata


def _collect_errors(errors, path=''):
    if isinstance(errors, dict):
        for name, value in errors.items():
            field = snake_to_camel(name) if name else ''
            yield from _collect_errors(value, f'{path}.{field}' if path and field else path or field)
    elif isinstance(errors, (list, tuple)):
        for index, value in enumerate(errors):
            if isinstance(value, str):
                yield {'field': path or None, 'message': value}
            else:
                yield from _collect_errors(value, f'{path}[{index}]')


def get_json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest('Request body must be a JSON object')
    return payload


class JSONForm(FlaskForm):
    class Meta:
        # Requests authenticate with bearer tokens, not cookies plus CSRF tokens
        csrf = False

    # JSON keys that cannot be Python attribute names
    json_aliases = {'class': 'className'}

    @classmethod
    def from_json(cls, payload=None, **kwargs):
        payload = get_json_body() if payload is None else payload
        payload = {cls.json_aliases.get(key, key): value for key, value in payload.items()}
        form = cls(formdata=json_to_formdata(payload), **kwargs)
        form.submitted_fields = {camel_to_snake(key) for key in payload}
        return form

    def validate_or_raise(self):
        if not self.validate():
            raise ValidationFailed(list(_collect_errors(self.errors)))
        return self

    def changes(self, exclude=()):
        """Data of the top-level fields that were present in the request body."""
        return {
            name: field.data
            for name, field in self._fields.items()
            if name in self.submitted_fields and name not in exclude
        }


def strip_filter(value):
    return value.strip() if isinstance(value, str) else value


def lower_filter(value):
    return value.strip().lower() if isinstance(value, str) else value


def upper_filter(value):
    return value.strip().upper() if isinstance(value, str) else value
