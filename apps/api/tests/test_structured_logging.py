import uuid

from app.core.structured_logging import build_log_context


def test_build_log_context_stringifies_ids_and_skips_empty():
    baby_id = uuid.uuid4()
    detection_id = uuid.uuid4()

    context = build_log_context(baby_id=baby_id, detection_id=detection_id, route="/detections")

    assert context == {
        "baby_id": str(baby_id),
        "detection_id": str(detection_id),
        "route": "/detections",
    }


def test_build_log_context_empty():
    assert build_log_context() == {}
