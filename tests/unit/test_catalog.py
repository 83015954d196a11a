"""Tests for the built-in API and UI scenario catalogs."""

from __future__ import annotations

from storefront_qa.config import RunSettings
from storefront_qa.scenarios.catalog import (
    brand_security_scenarios,
    contact_upload_scenarios,
    product_visibility_scenarios,
    storefront_api_scenarios,
)
from storefront_qa.scenarios.models import (
    JsonFieldAbsent,
    JsonFieldPresent,
    StatusCode,
    ValidationErrorOn,
)
from storefront_qa.ui.catalog import storefront_ui_scenarios
from storefront_qa.ui.checks import AnyOf, ElementVisible, TitleMatches


class TestBrandScenarios:

    def test_destructive_delete_is_opt_in(self):
        assert [s.name for s in brand_security_scenarios()] == ['brand_delete_as_customer_forbidden']
        names = [s.name for s in brand_security_scenarios(include_destructive=True)]
        assert 'brand_delete_as_admin_allowed' in names

    def test_customer_delete_checks_brand_still_exists(self):
        scenario = brand_security_scenarios()[0]
        assert scenario.request.acting_as == 'customer'
        assert scenario.outcomes == (StatusCode(403),)
        assert scenario.follow_ups[0].request.method == 'GET'


class TestProductScenarios:

    def test_customer_hidden_fields(self):
        customer, admin = product_visibility_scenarios()
        assert JsonFieldAbsent('stock') in customer.outcomes
        assert JsonFieldAbsent('is_location_offer') in customer.outcomes
        assert admin.outcomes == (StatusCode(200), JsonFieldPresent('stock'))


class TestContactScenarios:

    def test_boundaries_follow_configured_limit(self):
        settings = RunSettings(upload_limit_kb=100, allowed_extensions=('png',))
        by_name = {s.name: s for s in contact_upload_scenarios(settings)}

        at_limit = by_name['contact_accepts_file_at_size_limit'].request.attachments[0]
        over = by_name['contact_rejects_file_over_size_limit']
        assert at_limit.size_bytes == 100 * 1024
        assert at_limit.filename.endswith('.png')
        assert over.request.attachments[0].size_bytes == 101 * 1024
        assert ValidationErrorOn('attachment', 'File should be smaller than 100KB.') in over.outcomes

    def test_one_acceptance_case_per_allowed_extension(self):
        by_name = {s.name: s for s in contact_upload_scenarios(RunSettings())}
        pdf = by_name['contact_accepts_pdf'].request.attachments[0]
        jpg = by_name['contact_accepts_jpg'].request.attachments[0]
        assert pdf.content_type == 'application/pdf'
        assert jpg.content_type == 'image/jpeg'
        assert 'contact_accepts_png' not in by_name

    def test_empty_file_is_zero_bytes(self):
        by_name = {s.name: s for s in contact_upload_scenarios(RunSettings())}
        empty = by_name['contact_rejects_empty_file']
        assert empty.request.attachments[0].size_bytes == 0
        assert empty.outcomes == (StatusCode(422), ValidationErrorOn('attachment'))


class TestFullCatalog:

    def test_names_are_unique(self):
        scenarios = storefront_api_scenarios(RunSettings(), include_destructive=True)
        names = [s.name for s in scenarios]
        assert len(names) == len(set(names))
        assert 'api_status_reachable' in names

    def test_ui_catalog(self):
        scenarios = {s.name: s for s in storefront_ui_scenarios()}
        assert scenarios['ui_homepage_title'].checks == (TitleMatches('Practice Software Testing'),)
        assert scenarios['ui_navigation_visible'].checks == (ElementVisible('text=Home'),)
        search = scenarios['ui_search_for_hammer']
        assert search.precondition is not None
        assert len(search.actions) == 2
        assert isinstance(search.checks[0], AnyOf)
