from chatmap_core.prompts import load_system_prompt


def test_load_answer_prompt():
    text = load_system_prompt("answer")
    assert text.strip()


def test_extract_prompt_names_every_task_type():
    text = load_system_prompt("extract", "zh")
    for task_type in ("NO_MAP_UPDATE", "LOCATION_LIST", "ROUTE"):
        assert task_type in text
    assert "latitude" in text and "longitude" in text
