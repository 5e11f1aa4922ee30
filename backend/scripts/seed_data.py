"""
Seed Data Script - Creates the sample "Doc Review" workflow and a document
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from docflow.repositories.mongo_client import get_collection, create_indexes
from docflow.repositories.workflow_repo import MongoWorkflowRepository
from docflow.domain.models import WorkflowDefinition

DOC_REVIEW = {
    "workflow_id": "WF-doc-review",
    "name": "Doc Review",
    "description": "Editorial review followed by legal sign-off",
    "applies_to": ["documents"],
    "steps": [
        {
            "step_id": "draft-review",
            "name": "Draft Review",
            "step_type": "approval",
            "assigned_to": {"assignee_type": "role", "role": "editor"},
            "sla_hours": 24,
            "next_steps": [
                {"outcome": "approved", "next_step_id": "legal"},
                {"outcome": "rejected", "next_step_id": "revise"},
            ],
        },
        {
            "step_id": "revise",
            "name": "Revise Draft",
            "step_type": "review",
            "assigned_to": {"assignee_type": "role", "role": "author"},
            "next_steps": [{"outcome": "resubmitted", "next_step_id": "draft-review"}],
        },
        {
            "step_id": "legal",
            "name": "Legal Sign-off",
            "step_type": "sign-off",
            "assigned_to": {"assignee_type": "role", "role": "legal"},
            "conditions": [{"field": "requires_legal", "operator": "equals", "value": True}],
            "sla_hours": 48,
        },
    ],
}


def seed():
    create_indexes()

    repo = MongoWorkflowRepository()
    definition = repo.save(WorkflowDefinition.model_validate(DOC_REVIEW))
    print(f"Seeded workflow {definition.workflow_id} ({definition.name})")

    documents = get_collection("documents")
    if documents.count_documents({"_id": "doc-1"}) == 0:
        documents.insert_one({"_id": "doc-1", "title": "Quarterly report", "requires_legal": True})
        print("Seeded document documents/doc-1")
    else:
        print("Document documents/doc-1 already exists. Skipping.")


if __name__ == "__main__":
    seed()
