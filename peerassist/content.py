"""Content negotiation: accept markdown (with YAML frontmatter) or JSON."""

from __future__ import annotations

import json

import frontmatter
import yaml
from fastapi import Request, Response
from pydantic import BaseModel


async def parse_body(request: Request) -> dict:
    """Parse request body as JSON or markdown with YAML frontmatter."""
    content_type = request.headers.get("content-type", "")
    raw = await request.body()
    text = raw.decode("utf-8").strip()

    if not text:
        return {}

    if "application/json" in content_type:
        return json.loads(text)

    # Try JSON first (some clients send JSON without content-type),
    # but only if it looks like JSON and content-type isn't explicitly markdown
    if text.startswith("{") and "text/markdown" not in content_type:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

    # Markdown: frontmatter holds the fields, the body is the task description
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Malformed frontmatter: {e}") from e
    result = dict(post.metadata)
    if post.content.strip():
        result["description"] = post.content.strip()
    return result


def wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def render_response(
    request: Request,
    data: dict | BaseModel,
    status_code: int = 200,
    headers: dict | None = None,
) -> Response:
    """Return JSON or markdown based on Accept header."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", exclude_none=True)

    if wants_json(request):
        return Response(
            content=json.dumps(data, indent=2),
            status_code=status_code,
            media_type="application/json",
            headers=headers,
        )

    # Copy before mutating so callers' dicts are not affected
    data = dict(data)

    # Markdown: structured fields as YAML frontmatter, 'description'/'message' as body
    body_key = None
    for k in ("description", "message", "error"):
        if k in data:
            body_key = k
            break

    if body_key:
        body = str(data.pop(body_key))
        if data:
            content = frontmatter.dumps(frontmatter.Post(body, **data))
        else:
            content = body
    else:
        content = frontmatter.dumps(frontmatter.Post("", **data))

    return Response(
        content=content,
        status_code=status_code,
        media_type="text/markdown",
        headers=headers,
    )


def render_task(request: Request, task: BaseModel, status_code: int = 200) -> Response:
    """Render a task view with its id and status mirrored in headers."""
    headers = {"X-Task-Id": task.task_id, "X-Status": task.status}
    return render_response(request, task, status_code=status_code, headers=headers)
