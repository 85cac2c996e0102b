"""Tests for the rule-based mock analysis."""
import pytest

from api_persona_pipeline.app.mock import TEMPLATES, mock_analysis, select_template
from api_persona_pipeline.app.parser import parse_persona


@pytest.mark.parametrize("input_text, expected", [
    ("/users/123/follow", "social_follow"),
    ("POST /users/9/followers", "social_follow"),
    ("/users/123", "user_profile"),
    ("/auth/refresh", "authentication"),
    ("/login", "authentication"),
    ("/products/4", "ecommerce"),
    ("/reviews?limit=5", "ecommerce"),
    ("/weather/today", "generic"),
])
def test_endpoint_rules(input_text, expected):
    assert select_template(input_text, "endpoint") == expected


def test_users_rule_wins_over_auth_rule():
    assert select_template("/users/auth/settings", "endpoint") == "user_profile"


def test_follow_without_users_is_not_social():
    assert select_template("/follow/42", "endpoint") == "generic"


def test_matching_is_case_sensitive():
    assert select_template("/USERS/1", "endpoint") == "generic"


@pytest.mark.parametrize("input_type", ["openapi_url", "openapi_spec"])
def test_non_endpoint_types_always_use_generic(input_type):
    assert select_template("/users/1/follow", input_type) == "generic"
    text = mock_analysis("https://example.com/openapi.json", input_type)
    assert text.startswith("**Purpose**: API functionality for https://example.com/openapi.json")


def test_known_templates_are_returned_verbatim():
    assert mock_analysis("/auth/login", "endpoint") == TEMPLATES["authentication"]


def test_mock_is_deterministic():
    first = mock_analysis("/payments/{id}", "endpoint")
    second = mock_analysis("/payments/{id}", "endpoint")
    assert first == second
    assert "/payments/{id}" in first


def test_every_template_has_six_sections():
    labels = ["Purpose", "Audience", "Data Sensitivity", "Authentication Friction",
              "Business Model", "Example Use Case"]
    for text in list(TEMPLATES.values()) + [mock_analysis("/x", "endpoint")]:
        for label in labels:
            assert f"**{label}**:" in text


def test_social_follow_persona():
    persona = parse_persona(mock_analysis("/users/123/follow", "endpoint"), "/users/123/follow", "endpoint")
    assert "follow" in persona.purpose.lower()
    assert persona.authentication_friction == "high"
    assert persona.business_model == "SaaS"
    assert persona.data_sensitivity == "medium"


def test_authentication_persona():
    persona = parse_persona(mock_analysis("/auth/login", "endpoint"), "/auth/login", "endpoint")
    assert persona.data_sensitivity == "high"
    assert persona.authentication_friction == "low"
    assert persona.business_model == "Internal"
