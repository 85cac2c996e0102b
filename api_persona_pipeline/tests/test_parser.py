"""Tests for persona parsing from free-form model output."""
import pytest

from api_persona_pipeline.app import parser
from api_persona_pipeline.app.mock import mock_analysis
from api_persona_pipeline.app.parser import parse_persona

TEMPLATE = (
    "**Purpose**: X\n"
    "**Audience**: Y\n"
    "**Data Sensitivity**: high\n"
    "**Authentication Friction**: low\n"
    "**Business Model**: SaaS\n"
    "**Example Use Case**: Z"
)


def test_six_section_template_parses_exactly():
    persona = parse_persona(TEMPLATE, "/orders", "endpoint")
    assert persona.model_dump() == {
        "purpose": "X",
        "audience": "Y",
        "data_sensitivity": "high",
        "authentication_friction": "low",
        "business_model": "SaaS",
        "example_use_case": "Z",
    }


def test_wire_names_are_camel_case():
    data = parse_persona(TEMPLATE, "/orders", "endpoint").model_dump(by_alias=True)
    assert set(data) == {
        "purpose", "audience", "dataSensitivity",
        "authenticationFriction", "businessModel", "exampleUseCase",
    }


def test_out_of_enum_sensitivity_keeps_default():
    text = TEMPLATE.replace("**Data Sensitivity**: high", "**Data Sensitivity**: critical")
    persona = parse_persona(text, "/orders", "endpoint")
    assert persona.data_sensitivity == "medium"
    assert persona.authentication_friction == "low"


def test_labels_are_case_insensitive_and_levels_lowercased():
    text = "**purpose**: Lists invoices\n**DATA SENSITIVITY**: HIGH\n**authentication friction**: Medium"
    persona = parse_persona(text, "/invoices", "endpoint")
    assert persona.purpose == "Lists invoices"
    assert persona.data_sensitivity == "high"
    assert persona.authentication_friction == "medium"


def test_only_first_line_of_a_section_is_kept():
    text = "**Purpose**: Manages carts\nIt also handles coupons.\n\n**Audience**: Shop developers"
    persona = parse_persona(text, "/cart", "endpoint")
    assert persona.purpose == "Manages carts"
    assert persona.audience == "Shop developers"


@pytest.mark.parametrize("captured, expected", [
    ("Open API — free for everyone", "Open API"),
    ("monetized via usage tiers", "Monetized"),
    ("Internal tooling, later SaaS", "Internal"),
    ("Freemium", "SaaS"),
])
def test_business_model_substring_match(captured, expected):
    persona = parse_persona(f"**Purpose**: p\n**Business Model**: {captured}", "/x", "endpoint")
    assert persona.business_model == expected


def test_missing_purpose_with_user_input_uses_user_heuristic():
    persona = parse_persona("Sorry, I cannot help with that.", "GET /users/42", "endpoint")
    assert persona.purpose == "User management and data operations"
    assert persona.audience == "Frontend and mobile developers"
    assert persona.example_use_case == "Integration with user management systems"


def test_missing_purpose_with_auth_input_forces_high_sensitivity():
    persona = parse_persona("no sections here", "POST /auth/token", "endpoint")
    assert persona.purpose == "Authentication and authorization services"
    assert persona.audience == "Application developers"
    assert persona.data_sensitivity == "high"


def test_missing_purpose_uses_second_token_of_input():
    persona = parse_persona("nothing useful", "GET /orders/7", "endpoint")
    assert persona.purpose == "API functionality for /orders/7"
    assert persona.audience == "Application developers"
    assert persona.example_use_case == "Integration with business systems"


def test_missing_purpose_single_token_input_uses_whole_input():
    persona = parse_persona("nothing useful", "/orders", "endpoint")
    assert persona.purpose == "API functionality for /orders"


def test_empty_text_returns_whole_record_fallback():
    persona = parse_persona("", "/orders", "endpoint")
    assert persona.purpose == "Analysis of endpoint: /orders"
    assert persona.audience == "Application developers"
    assert persona.example_use_case == "Integration with business systems"
    assert persona.data_sensitivity == "medium"
    assert persona.authentication_friction == "medium"
    assert persona.business_model == "SaaS"


def test_none_text_returns_whole_record_fallback():
    persona = parse_persona(None, "/users", "openapi_url")
    assert persona.purpose == "Analysis of openapi_url: /users"
    assert persona.example_use_case == "Integration with user management systems"


def test_internal_failure_degrades_to_fallback(monkeypatch):
    def boom(text, original_input):
        raise RuntimeError("regex engine exploded")

    monkeypatch.setattr(parser, "_parse_fields", boom)
    persona = parse_persona(TEMPLATE, "/orders", "endpoint")
    assert persona.purpose == "Analysis of endpoint: /orders"


@pytest.mark.parametrize("input_text", [
    "/users/1/follow", "/users/1", "/auth/login", "/products/9/reviews", "/weather",
])
def test_mock_output_always_yields_complete_persona(input_text):
    persona = parse_persona(mock_analysis(input_text, "endpoint"), input_text, "endpoint")
    assert persona.purpose
    assert persona.audience
    assert persona.example_use_case
