"""
AI fix generation for security issues.

Asks a language model for an explanation, copy-paste SQL and a prompt for an
AI coding assistant. Whenever the model cannot be used or returns something
unusable, a deterministic template is returned instead, so callers always
get a fix.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from openai import OpenAI

from mockly.core.config import AIConfig
from mockly.core.errors import FixGenerationError

logger = logging.getLogger("mockly.fix_generator")

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_EXPLANATION = "Here's how to fix this issue:"

SYSTEM_PROMPT = """You are a Supabase security expert. Generate a fix for the given database security issue.

OUTPUT FORMAT (valid JSON only):
{
  "explanation": "1-2 friendly sentences explaining the fix in simple terms",
  "sql": "Complete, copy-paste ready SQL with comments",
  "agentPrompt": "A detailed prompt for an AI coding assistant to implement this fix"
}

RULES FOR SQL:
- Always enable RLS first with ALTER TABLE
- Create specific, least-privilege policies
- Add helpful inline comments
- Use auth.uid() for user-owned data patterns
- Include example alternatives as comments if applicable

RULES FOR agentPrompt:
Write a comprehensive, actionable prompt that a developer can paste directly into an AI coding assistant. The prompt should:

1. Start with a clear task statement
2. Provide context about the security issue
3. Include the exact SQL code to run
4. Specify step-by-step instructions for the Supabase Dashboard
5. Include verification steps to confirm the fix worked
6. Mention edge cases or customizations needed (e.g., if column names differ)
7. Be formatted with markdown for readability

Make the prompt self-contained so the assistant has everything needed without additional context."""


@dataclass
class FixRequest:
    """What to generate a fix for."""

    table_name: str
    issue_type: str
    issue_description: str = ""
    columns: List[str] = field(default_factory=list)
    current_policy: Optional[str] = None


@dataclass
class GeneratedFix:
    """A fix ready to show to the user."""

    explanation: str
    sql: str
    agent_prompt: str
    source: str = "fallback"

    def to_dict(self) -> Dict[str, str]:
        return {
            "explanation": self.explanation,
            "sql": self.sql,
            "agentPrompt": self.agent_prompt,
        }


def build_user_prompt(request: FixRequest) -> str:
    """Build the user message describing the issue to fix."""
    prompt = f"""Generate a security fix for this Supabase issue:

TABLE: {request.table_name}
ISSUE TYPE: {request.issue_type}
DESCRIPTION: {request.issue_description}"""

    if request.columns:
        prompt += f"\nCOLUMNS: {', '.join(request.columns)}"

    if request.current_policy:
        prompt += f"\nCURRENT POLICY: {request.current_policy}"

    prompt += """

Generate the fix with:
1. SQL that enables RLS and creates appropriate policies
2. Assume a user_id column exists for user-owned data (mention how to adapt if different)
3. A comprehensive agent prompt for AI coding assistants

Return valid JSON."""

    return prompt


def build_fallback_agent_prompt(request: FixRequest) -> str:
    """Templated markdown instructions for an AI coding assistant."""
    table = request.table_name
    problem = request.issue_description or (
        f"The `{table}` table is currently accessible to anyone with the anon key, "
        f"which is a security vulnerability."
    )
    sql = f"""ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

CREATE POLICY "Users can only access their own data"
ON {table}
FOR ALL
TO authenticated
USING (auth.uid() = user_id)
WITH CHECK (auth.uid() = user_id);"""

    return f"""# Fix Row Level Security on "{table}" Table

## Task
Secure the `{table}` table in my Supabase project by enabling Row Level Security (RLS) and adding appropriate policies.

## The Problem
{problem}

## Solution

### Step 1: Open Supabase SQL Editor
1. Go to your Supabase Dashboard
2. Navigate to **SQL Editor** in the left sidebar
3. Click **New Query**

### Step 2: Run This SQL

```sql
{sql}
```

### Step 3: Verify the Fix
Run this query to confirm RLS is enabled:

```sql
SELECT tablename, rowsecurity
FROM pg_tables
WHERE schemaname = 'public' AND tablename = '{table}';
```

Expected result: `rowsecurity` should be `true`.

### Step 4: Test the Policy
1. Sign in as a test user in your app
2. Try to fetch data from `{table}`
3. Confirm you only see rows where `user_id` matches your authenticated user

## Customization Notes

- **Different column name?** If your table uses something other than `user_id` (like `owner_id`, `created_by`, or `author_id`), replace `user_id` in the policy with your column name.

- **Public read access?** If you want anyone to read but only owners to modify:
```sql
CREATE POLICY "Public read access" ON {table} FOR SELECT USING (true);
CREATE POLICY "Owner modify access" ON {table} FOR ALL TO authenticated USING (auth.uid() = user_id);
```

- **Admin override?** Add this for admin access:
```sql
CREATE POLICY "Admin full access" ON {table} TO authenticated USING (auth.jwt() ->> 'role' = 'admin');
```

## Success Criteria
- [ ] RLS is enabled on `{table}`
- [ ] Policy restricts access to authenticated users
- [ ] Users can only see/modify their own rows
- [ ] App functionality still works correctly"""


def build_fallback_fix(request: FixRequest) -> GeneratedFix:
    """
    Deterministic fix used whenever AI generation is unavailable.

    The SQL always enables RLS on the table and creates an owner-only policy
    on it, followed by commented alternatives.
    """
    table = request.table_name

    sql = f"""-- Step 1: Enable Row Level Security
ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

-- Step 2: Create policy for authenticated users
-- Users can only access rows where user_id matches their auth.uid()
CREATE POLICY "Users can only access their own data"
ON {table}
FOR ALL
TO authenticated
USING (auth.uid() = user_id)
WITH CHECK (auth.uid() = user_id);

-- ALTERNATIVE POLICIES (uncomment if needed):

-- Public read, private write:
-- CREATE POLICY "Anyone can read" ON {table} FOR SELECT USING (true);
-- CREATE POLICY "Owners can modify" ON {table} FOR ALL TO authenticated USING (auth.uid() = user_id);

-- Admin bypass:
-- CREATE POLICY "Admin access" ON {table} TO authenticated USING (auth.jwt() ->> 'role' = 'admin');"""

    prompt_request = FixRequest(
        table_name=table,
        issue_type=request.issue_type,
        issue_description=request.issue_description
        or f'The "{table}" table is publicly accessible without RLS protection.',
        columns=request.columns,
        current_policy=request.current_policy,
    )

    return GeneratedFix(
        explanation=(
            f'I\'ll help you protect the "{table}" table by enabling Row Level Security '
            f"and adding a policy that ensures users can only access their own data."
        ),
        sql=sql,
        agent_prompt=build_fallback_agent_prompt(prompt_request),
        source="fallback",
    )


def parse_fix_response(content: Optional[str], request: FixRequest) -> GeneratedFix:
    """
    Turn a model reply into a GeneratedFix.

    Raises:
        FixGenerationError: If the reply is empty or not a JSON object
    """
    if not content or not content.strip():
        raise FixGenerationError("No response from AI")

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise FixGenerationError(f"AI response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise FixGenerationError("AI response is not a JSON object")

    return GeneratedFix(
        explanation=parsed.get("explanation") or DEFAULT_EXPLANATION,
        sql=parsed.get("sql") or "",
        agent_prompt=parsed.get("agentPrompt") or build_fallback_agent_prompt(request),
        source="ai",
    )


class FixGenerator:
    """Generates fixes with the configured AI provider, falling back to templates."""

    def __init__(self, config: Optional[AIConfig] = None, client: Optional[Any] = None):
        """
        Args:
            config: AI provider configuration
            client: Pre-built OpenAI client (created lazily otherwise)
        """
        self.config = config or AIConfig()
        self._client = client

    def generate(self, request: FixRequest) -> GeneratedFix:
        """
        Generate a fix. Never raises; failures produce the fallback fix.
        """
        if not self.config.enabled:
            logger.debug(f"AI disabled, using template fix for {request.table_name}")
            return build_fallback_fix(request)

        try:
            content = self._complete(build_user_prompt(request))
            return parse_fix_response(content, request)
        except Exception as e:
            logger.warning(f"AI fix generation failed for {request.table_name}: {e}")
            return build_fallback_fix(request)

    def _complete(self, user_prompt: str) -> Optional[str]:
        provider = self.config.provider
        if provider == "openai":
            return self._complete_openai(user_prompt)
        if provider == "openrouter":
            return self._complete_openrouter(user_prompt)
        raise FixGenerationError(f"AI provider '{provider}' is not enabled")

    def _messages(self, user_prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    def _complete_openai(self, user_prompt: str) -> Optional[str]:
        if self._client is None:
            if not self.config.openai_api_key:
                raise FixGenerationError("OpenAI API key not configured")
            self._client = OpenAI(
                api_key=self.config.openai_api_key.get_secret_value(),
                timeout=self.config.request_timeout,
            )

        response = self._client.chat.completions.create(
            model=self.config.model,
            messages=self._messages(user_prompt),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content

    def _complete_openrouter(self, user_prompt: str) -> Optional[str]:
        if not self.config.openrouter_api_key:
            raise FixGenerationError("OpenRouter API key not configured")

        headers = {
            "Authorization": f"Bearer {self.config.openrouter_api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }
        request_data = {
            "model": self.config.openrouter_model,
            "messages": self._messages(user_prompt),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "response_format": {"type": "json_object"},
        }

        response = requests.post(
            OPENROUTER_URL,
            headers=headers,
            json=request_data,
            timeout=self.config.request_timeout,
        )
        if response.status_code != 200:
            raise FixGenerationError(
                f"OpenRouter API error: {response.status_code} - {response.text}"
            )

        result = response.json()
        return result["choices"][0]["message"]["content"]


def generate_fix(request: FixRequest, config: Optional[AIConfig] = None) -> GeneratedFix:
    """Generate a fix with a one-off :class:`FixGenerator`."""
    return FixGenerator(config).generate(request)
