from lissan import models
from lissan.init_db import SAMPLE_WORKFLOWS, create_demo_company


def test_demo_company_is_created_once(db):
    first = create_demo_company(db, "Demo Company", "demo@example.com", "secret123")
    second = create_demo_company(db, "Demo Company", "demo@example.com", "secret123")

    assert first.id == second.id
    assert db.query(models.Company).count() == 1
    workflows = db.query(models.Workflow).filter(models.Workflow.company_id == first.id).all()
    assert sorted(w.config["type"] for w in workflows) == sorted(w["config"]["type"] for w in SAMPLE_WORKFLOWS)
