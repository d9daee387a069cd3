import asyncio
import enum
import functools
import json
import logging
from typing import Any, Dict, Optional, Union

from .actions import AgentAction, AgentDecision, Priority
from .brain import BrainTraits, brain_bias_directives, brain_temperature
from .config import RuntimeConfig
from .life import life_state_prompt_block, memories_prompt_block
from .llm import TextGenerator
from .perception import PerceptionContext

USER_PROMPT = "Based on the context above, decide what action to take next. Return JSON only."
MAX_REASONING_CHARS = 500
MAX_HINT_CHARS = 300
POSTING_DUE_HOURS = 4
POSTING_URGENT_HOURS = 8
COMMENT_FOCUS_HOURS = 4
COLD_COMMENT_FOCUS_HOURS = 2
CURIOUS_POST_MAX_AGE_HOURS = 6
CURIOUS_POST_MIN_INTERACTIONS = 2
CURIOUS_COMMENT_BUDGET = 3
RECHARGE_REST = 25


class FallbackReason(str, enum.Enum):
    EMPTY_OUTPUT = "empty_output"
    GENERATION_FAILED = "generation_failed"
    TIMEOUT = "timeout"
    INVALID_JSON = "invalid_json"
    NOT_AN_OBJECT = "not_an_object"
    UNKNOWN_ACTION = "unknown_action"
    NO_CANDIDATES = "no_candidates"


def build_decision_prompt(
    context: PerceptionContext,
    brain: Optional[BrainTraits] = None,
    config: Optional[RuntimeConfig] = None,
) -> str:
    config = config or RuntimeConfig()
    handle = context.handle

    if context.unanswered_comments:
        comment_lines = "\n".join(
            f'- [{c.comment_id}] @{c.comment_author} on "{c.post_content[:80]}...": '
            f'"{c.comment_content}" ({c.age_minutes}min ago)'
            for c in context.unanswered_comments[:5]
        )
        comment_section = f"UNANSWERED COMMENTS ON YOUR POSTS ({len(context.unanswered_comments)}):\n{comment_lines}"
    else:
        comment_section = "No unanswered comments."

    if context.feed_posts:
        feed_lines = "\n".join(
            f'- [{p.post_id}] @{p.bot_handle}: "{p.content[:80]}..." '
            f"({p.likes} likes, {p.comments} comments, {p.age_hours}h ago"
            f"{', already liked' if p.already_liked else ''})"
            for p in context.feed_posts[:5]
        )
        feed_section = f"INTERESTING POSTS ON THE PLATFORM:\n{feed_lines}"
    else:
        feed_section = "No notable recent posts."

    if context.trending_topics:
        trending_section = f"TRENDING TOPICS: {', '.join(context.trending_topics)}"
    else:
        trending_section = "No specific trends right now."

    identity = [f"You are the autonomous agent controlling @{handle} ({context.name}) on Rudo, an AI social platform."]
    if context.personality:
        identity.append(f"Personality: {context.personality}")
    if context.niche:
        identity.append(f"Niche: {context.niche}")
    if context.tone:
        identity.append(f"Tone: {context.tone}")
    identity.append(f"Tier: {context.owner_tier}")

    state = "\n".join(
        [
            "CURRENT STATE:",
            f"- Hours since last post: {context.hours_since_last_post.describe()}",
            f"- Posts today: {context.posts_today} / {context.posts_per_day} daily limit",
            f"- Current hour: {context.current_hour}:00 (posting hours: {config.wake_hour}:00-{config.sleep_hour}:00)",
            f"- Avg engagement score: {context.avg_engagement:.1f}",
            f"- Comments you made in the last 6h: {context.recent_comment_count}",
        ]
    )

    sections = ["\n".join(identity), state, comment_section, feed_section, trending_section]
    if context.world_events:
        sections.append(
            "WHAT'S HAPPENING IN THE WORLD:\n" + "\n".join(f"- {e.headline}" for e in context.world_events)
        )
    if context.life_state is not None:
        sections.append(life_state_prompt_block(context.life_state))
    recalled = memories_prompt_block(context.memories)
    if recalled:
        sections.append(recalled)
    biases = brain_bias_directives(brain)
    if biases:
        sections.append(biases)

    sections.append(
        f"""DECIDE what @{handle} should do next. You MUST return a JSON object with these fields:
{{
  "action": "CREATE_POST" | "RESPOND_TO_COMMENT" | "RESPOND_TO_POST" | "LIKE_POST" | "IDLE",
  "reasoning": "1-2 sentence explanation of why",
  "priority": "high" | "medium" | "low",
  "target_id": "comment or post id in [brackets] above (required for RESPOND and LIKE actions, omit for others)",
  "context_hint": "optional brief hint for the action handler"
}}"""
    )
    sections.append(
        "\n".join(
            [
                "DECISION GUIDELINES:",
                "- CREATE_POST if it's been a while since posting and you're under the daily limit. "
                "Priority is HIGH if never posted or > 8h since last post.",
                "- RESPOND_TO_COMMENT if there are unanswered comments. Engaging fans builds loyalty. "
                "Use the comment id as target_id.",
                "- RESPOND_TO_POST if an interesting feed post aligns with your niche. "
                "Use the post id as target_id. Don't force it.",
                "- LIKE_POST for a post you enjoyed but have nothing to add to. Never like a post twice.",
                "- IDLE if it's outside posting hours, you've hit the daily limit, or there's nothing compelling to do.",
                "- Prioritize responding to comments over creating new posts.",
                "- Don't create posts just to hit the daily limit. Quality over quantity.",
            ]
        )
    )
    return "\n\n".join(sections)


def _text(value: Any, limit: int) -> str:
    if value is None:
        return ""
    return str(value).strip()[:limit]


def _target(parsed: Dict[str, Any]) -> str:
    raw = parsed.get("target_id", parsed.get("targetId"))
    return str(raw).strip() if raw else ""


def _priority(parsed: Dict[str, Any]) -> Priority:
    try:
        return Priority(str(parsed.get("priority", "")).strip().lower())
    except ValueError:
        return Priority.MEDIUM


def validate_decision(parsed: Any, context: PerceptionContext) -> Union[AgentDecision, FallbackReason]:
    """
    Turn parsed model output into a decision the dispatcher can trust.
    Target ids the model invented are swapped for a real candidate; when no
    candidate exists the caller gets a FallbackReason instead.
    """
    if not isinstance(parsed, dict):
        return FallbackReason.NOT_AN_OBJECT

    try:
        action = AgentAction(str(parsed.get("action", "")).strip().upper())
    except ValueError:
        return FallbackReason.UNKNOWN_ACTION

    reasoning = _text(parsed.get("reasoning"), MAX_REASONING_CHARS)
    hint = _text(parsed.get("context_hint", parsed.get("contextHint")), MAX_HINT_CHARS) or None
    priority = _priority(parsed)
    target = _target(parsed)

    if action is AgentAction.RESPOND_TO_COMMENT:
        if target not in context.comment_ids():
            if not context.unanswered_comments:
                return FallbackReason.NO_CANDIDATES
            return AgentDecision(
                action=action,
                reasoning=reasoning or "Responding to recent comment",
                priority=Priority.MEDIUM,
                target_id=context.unanswered_comments[0].comment_id,
                context_hint=hint,
            )
    elif action is AgentAction.RESPOND_TO_POST:
        if target not in context.post_ids():
            if not context.feed_posts:
                return FallbackReason.NO_CANDIDATES
            return AgentDecision(
                action=action,
                reasoning=reasoning or "Engaging with community post",
                priority=Priority.LOW,
                target_id=context.feed_posts[0].post_id,
                context_hint=hint,
            )
    elif action is AgentAction.LIKE_POST:
        likeable = [p for p in context.feed_posts if not p.already_liked]
        if target not in {p.post_id for p in likeable}:
            if not likeable:
                return FallbackReason.NO_CANDIDATES
            return AgentDecision(
                action=action,
                reasoning=reasoning or "Showing some love to a post in the feed",
                priority=Priority.LOW,
                target_id=likeable[0].post_id,
                context_hint=hint,
            )
    else:
        target = ""

    return AgentDecision(
        action=action,
        reasoning=reasoning or "Agent decision",
        priority=priority,
        target_id=target or None,
        context_hint=hint,
    )


def fallback_decision(
    context: PerceptionContext,
    brain: Optional[BrainTraits] = None,
    config: Optional[RuntimeConfig] = None,
) -> AgentDecision:
    """Rule ladder used whenever generation or validation does not produce a decision."""
    config = config or RuntimeConfig()
    hours = context.hours_since_last_post
    comments = context.unanswered_comments

    if not config.is_waking_hour(context.current_hour):
        return AgentDecision(AgentAction.IDLE, "Outside posting hours", Priority.LOW)

    if context.posts_today >= context.posts_per_day:
        if comments:
            return AgentDecision(
                AgentAction.RESPOND_TO_COMMENT,
                "Daily limit reached, responding to fans instead",
                Priority.MEDIUM,
                target_id=comments[0].comment_id,
            )
        return AgentDecision(AgentAction.IDLE, "Daily post limit reached", Priority.LOW)

    focus_hours = COLD_COMMENT_FOCUS_HOURS if brain is not None and brain.warmth < 0.3 else COMMENT_FOCUS_HOURS
    if comments and hours.under(focus_hours):
        return AgentDecision(
            AgentAction.RESPOND_TO_COMMENT,
            "Engaging with fans before creating new content",
            Priority.MEDIUM,
            target_id=comments[0].comment_id,
        )

    if brain is not None and brain.curiosity > 0.6 and context.recent_comment_count < CURIOUS_COMMENT_BUDGET:
        for post in context.feed_posts:
            if (
                post.age_hours <= CURIOUS_POST_MAX_AGE_HOURS
                and post.likes + post.comments >= CURIOUS_POST_MIN_INTERACTIONS
            ):
                return AgentDecision(
                    AgentAction.RESPOND_TO_POST,
                    f"Curious about @{post.bot_handle}'s post",
                    Priority.MEDIUM,
                    target_id=post.post_id,
                )

    if hours.at_least(POSTING_DUE_HOURS):
        return AgentDecision(
            AgentAction.CREATE_POST,
            "First ever post" if hours.never else f"{hours.hours:.1f}h since last post",
            Priority.HIGH if hours.exceeds(POSTING_URGENT_HOURS) else Priority.MEDIUM,
        )

    for post in context.feed_posts:
        if not post.already_liked:
            return AgentDecision(
                AgentAction.LIKE_POST,
                f"Liking @{post.bot_handle}'s post",
                Priority.LOW,
                target_id=post.post_id,
            )

    if context.life_state is not None and context.life_state.needs.rest < RECHARGE_REST:
        return AgentDecision(AgentAction.IDLE, "Running low on energy, taking time to recharge", Priority.LOW)

    return AgentDecision(AgentAction.IDLE, "Nothing compelling to do right now", Priority.LOW)


class DecisionEngine:
    def __init__(self, config: RuntimeConfig, generator: TextGenerator):
        self.config = config
        self.generator = generator
        self.logger = logging.getLogger("rudo.decision")

    async def decide(self, context: PerceptionContext, brain: Optional[BrainTraits] = None) -> AgentDecision:
        outcome = await self._generate(context, brain)
        if isinstance(outcome, FallbackReason):
            self.logger.info("Fallback decision for %s (%s)", context.bot_id, outcome.value)
            return fallback_decision(context, brain, self.config)
        return outcome

    async def _generate(
        self, context: PerceptionContext, brain: Optional[BrainTraits]
    ) -> Union[AgentDecision, FallbackReason]:
        prompt = build_decision_prompt(context, brain, self.config)
        call = functools.partial(
            self.generator.generate,
            prompt,
            USER_PROMPT,
            max_tokens=self.config.generation_max_tokens,
            temperature=brain_temperature(brain, self.config.generation_temperature),
            json_mode=True,
        )
        loop = asyncio.get_running_loop()
        try:
            raw = await asyncio.wait_for(
                loop.run_in_executor(None, call), timeout=self.config.generation_timeout_seconds
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Decision generation for %s timed out after %.1fs",
                context.bot_id,
                self.config.generation_timeout_seconds,
            )
            return FallbackReason.TIMEOUT
        except Exception as exc:
            self.logger.warning("Decision generation for %s failed: %s", context.bot_id, exc)
            return FallbackReason.GENERATION_FAILED

        if raw is None:
            return FallbackReason.EMPTY_OUTPUT
        if not isinstance(raw, str):
            return FallbackReason.INVALID_JSON
        if not raw.strip():
            return FallbackReason.EMPTY_OUTPUT
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            return FallbackReason.INVALID_JSON
        return validate_decision(parsed, context)
