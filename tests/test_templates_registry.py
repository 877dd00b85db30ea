import templates_registry


def test_known_and_unknown_templates():
    assert templates_registry.exists("modern")
    assert not templates_registry.exists("brutalist")
    assert templates_registry.get_template("brutalist") is None


def test_templates_declare_their_sections():
    professional = templates_registry.get_template("professional")
    assert professional.sections == ("hero", "experience", "projects")


def test_listing_is_json_friendly():
    listed = templates_registry.list_templates()
    assert [template["id"] for template in listed] == ["modern", "minimal", "professional"]
    assert all(isinstance(template["colors"], list) for template in listed)
