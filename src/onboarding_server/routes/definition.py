"""Definition endpoint — exposes the loaded questionnaire steps.

Read-only and unauthenticated: clients may fetch it to render the flow.
"""

from fastapi import APIRouter, Depends

from onboarding_flow.definition import QuestionnaireDefinition

from onboarding_server.dependencies import get_definition

router = APIRouter(prefix="/questionnaire", tags=["definition"])


@router.get("/definition")
def get_definition_steps(
    definition: QuestionnaireDefinition = Depends(get_definition),
) -> dict:
    """Return the definition version and its steps in declared order."""
    return {
        "version": definition.version,
        "steps": [step.model_dump(mode="json") for step in definition.steps],
    }
