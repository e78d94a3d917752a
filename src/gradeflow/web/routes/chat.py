"""AI tutor chat endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gradeflow.core.tutor_chat import StudentContext, tutor_reply
from gradeflow.llm.client import LLMClient
from gradeflow.web.dependencies import error_response, get_llm_client
from gradeflow.web.schemas import ChatRequestBody, ChatResponse

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/ai-chat", response_model=None)
async def ai_chat(
    body: ChatRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> ChatResponse | JSONResponse:
    """Answer a student's question using their class and score context."""
    ctx = body.student_context
    context = StudentContext(
        student_name=ctx.student_name,
        class_name=ctx.class_name,
        class_subject=ctx.class_subject,
        class_grade=ctx.class_grade,
        teacher=ctx.teacher,
        content_skill_scores=ctx.content_skill_scores,
        subject_skill_scores=ctx.subject_skill_scores,
        test_results=ctx.test_results,
    )

    try:
        reply = await tutor_reply(body.message, context, client)
    except Exception as e:
        return error_response(
            e,
            operation="ai_chat",
            default_message="Failed to get AI response. Please try again.",
        )

    return ChatResponse(response=reply)
