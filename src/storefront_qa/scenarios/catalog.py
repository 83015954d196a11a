"""Built-in storefront API scenarios.

Covers the storefront's known weak spots: brand deletion gated to admins,
stock data hidden from customers, contact-form attachment rules, and API
reachability. Brand ids come from the run's variables (``brand_id``, and
``disposable_brand_id`` for the destructive admin check); provisioning
those brands is done outside the runner.
"""

from __future__ import annotations

from storefront_qa.config import RunSettings

from .models import (
    FileDescriptor,
    FollowUp,
    JsonFieldAbsent,
    JsonFieldPresent,
    JsonFragmentMissing,
    RequestDescriptor,
    Scenario,
    StatusCode,
    ValidationErrorOn,
)

WRONG_EXTENSION_ERROR = 'The file extension is incorrect, we only accept txt files.'

CONTACT_FORM = {
    'first_name': 'John',
    'last_name': 'Doe',
    'email': 'john@example.com',
    'subject': 'Test Subject',
    'message': 'Test message',
}

HIDDEN_PRODUCT_FIELDS = ('stock', 'is_location_offer')


def brand_security_scenarios(*, include_destructive: bool = False) -> list[Scenario]:
    scenarios = [
        Scenario(
            name='brand_delete_as_customer_forbidden',
            request=RequestDescriptor('DELETE', '/brands/{brand_id}', acting_as='customer'),
            outcomes=(StatusCode(403),),
            follow_ups=(
                FollowUp(
                    RequestDescriptor('GET', '/brands/{brand_id}'),
                    (StatusCode(200),),
                ),
            ),
            tags=('security', 'brands'),
        ),
    ]
    if include_destructive:
        scenarios.append(Scenario(
            name='brand_delete_as_admin_allowed',
            request=RequestDescriptor(
                'DELETE', '/brands/{disposable_brand_id}', acting_as='admin',
            ),
            outcomes=(StatusCode(200),),
            tags=('security', 'brands', 'destructive'),
        ))
    return scenarios


def product_visibility_scenarios() -> list[Scenario]:
    return [
        Scenario(
            name='products_hide_stock_from_customers',
            request=RequestDescriptor('GET', '/products', acting_as='customer'),
            outcomes=(
                StatusCode(200),
                *(JsonFieldAbsent(f) for f in HIDDEN_PRODUCT_FIELDS),
            ),
            tags=('security', 'products'),
        ),
        Scenario(
            name='products_reveal_stock_to_admins',
            request=RequestDescriptor('GET', '/products', acting_as='admin'),
            outcomes=(StatusCode(200), JsonFieldPresent('stock')),
            tags=('security', 'products'),
        ),
    ]


def contact_upload_scenarios(settings: RunSettings) -> list[Scenario]:
    """Attachment type and size rules for ``POST /contact``.

    Size cases use the first allowed extension so only the size varies:
    empty, exactly at the limit (accepted), and one KB over (rejected).
    """
    limit = settings.upload_limit_kb
    ext = settings.allowed_extensions[0]
    too_large = f'File should be smaller than {limit}KB.'

    def _contact(name: str, attachment: FileDescriptor, *outcomes) -> Scenario:
        return Scenario(
            name=name,
            request=RequestDescriptor(
                'POST', '/contact', json_body=CONTACT_FORM, attachments=(attachment,),
            ),
            outcomes=outcomes,
            tags=('uploads',),
        )

    accepted = [
        _contact(
            f'contact_accepts_{allowed}',
            FileDescriptor.of_kilobytes(f'attachment.{allowed}', 100),
            StatusCode(200),
            JsonFragmentMissing({'error': WRONG_EXTENSION_ERROR}),
        )
        for allowed in settings.allowed_extensions
    ]
    return [
        *accepted,
        _contact(
            'contact_rejects_empty_file',
            FileDescriptor.of_kilobytes(f'empty.{ext}', 0),
            StatusCode(422),
            ValidationErrorOn('attachment'),
        ),
        _contact(
            'contact_accepts_file_at_size_limit',
            FileDescriptor.of_kilobytes(f'at-limit.{ext}', limit),
            StatusCode(200),
        ),
        _contact(
            'contact_rejects_file_over_size_limit',
            FileDescriptor.of_kilobytes(f'large.{ext}', limit + 1),
            StatusCode(422),
            ValidationErrorOn('attachment', too_large),
        ),
    ]


def connectivity_scenarios() -> list[Scenario]:
    return [
        Scenario(
            name='api_status_reachable',
            request=RequestDescriptor('GET', '/status'),
            outcomes=(StatusCode(200),),
            tags=('smoke',),
        ),
    ]


def storefront_api_scenarios(
    settings: RunSettings,
    *,
    include_destructive: bool = False,
) -> list[Scenario]:
    """Every built-in API scenario."""
    return [
        *connectivity_scenarios(),
        *brand_security_scenarios(include_destructive=include_destructive),
        *product_visibility_scenarios(),
        *contact_upload_scenarios(settings),
    ]
