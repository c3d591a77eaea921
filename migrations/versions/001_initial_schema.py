"""Initial schema: agent engine tables and indexes.

The product tables (profiles, properties, tenancies, payments, arrears,
maintenance, compliance, inspections) belong to the property-management
product and are only read by the engine, so they are not created here.

Revision ID: 001
Revises: None
Create Date: 2026-10-01
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ── 1. agent_event_queue ──
    op.execute("""
        CREATE TABLE agent_event_queue (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type TEXT NOT NULL,
            priority TEXT NOT NULL DEFAULT 'normal',
            payload JSONB NOT NULL DEFAULT '{}'::jsonb,
            user_id UUID NOT NULL,
            property_id UUID,
            processed BOOLEAN NOT NULL DEFAULT FALSE,
            processed_at TIMESTAMPTZ,
            error TEXT,
            attempts INT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX idx_agent_event_queue_unprocessed "
        "ON agent_event_queue(priority, created_at) WHERE processed = FALSE"
    )
    op.execute("CREATE INDEX idx_agent_event_queue_user ON agent_event_queue(user_id)")

    # ── 2. agent_events (directive audit log) ──
    op.execute("""
        CREATE TABLE agent_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            property_id UUID,
            event_source TEXT NOT NULL,
            event_type TEXT NOT NULL,
            model TEXT,
            context_snapshot JSONB,
            reasoning TEXT,
            tools_called JSONB,
            actions_taken INT NOT NULL DEFAULT 0,
            tokens_used INT NOT NULL DEFAULT 0,
            duration_ms INT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_events_user ON agent_events(user_id, created_at DESC)")
    op.execute("CREATE INDEX idx_agent_events_source ON agent_events(event_source)")

    # ── 3. agent_conversations / agent_messages ──
    op.execute("""
        CREATE TABLE agent_conversations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            title TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_conversations_user ON agent_conversations(user_id, updated_at DESC)")
    op.execute("""
        CREATE TABLE agent_messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            conversation_id UUID NOT NULL REFERENCES agent_conversations(id) ON DELETE CASCADE,
            role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system', 'tool')),
            content TEXT,
            tool_calls JSONB,
            tool_results JSONB,
            tokens_used INT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_messages_conversation ON agent_messages(conversation_id, created_at)")

    # ── 4. agent_pending_actions ──
    op.execute("""
        CREATE TABLE agent_pending_actions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            conversation_id UUID REFERENCES agent_conversations(id) ON DELETE SET NULL,
            action_type TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            tool_name TEXT NOT NULL,
            tool_params JSONB NOT NULL DEFAULT '{}'::jsonb,
            autonomy_level INT NOT NULL,
            recommendation TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            resolved_by UUID,
            resolved_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX idx_agent_pending_actions_user_pending "
        "ON agent_pending_actions(user_id, created_at DESC) WHERE status = 'pending'"
    )

    # ── 5. agent_decisions ──
    op.execute("""
        CREATE TABLE agent_decisions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            conversation_id UUID,
            decision_type TEXT NOT NULL,
            tool_name TEXT NOT NULL,
            input_data JSONB,
            output_data JSONB,
            autonomy_level INT,
            confidence NUMERIC(4,3),
            confidence_factors JSONB,
            was_auto_executed BOOLEAN NOT NULL DEFAULT FALSE,
            duration_ms INT NOT NULL DEFAULT 0,
            reasoning TEXT,
            owner_feedback TEXT,
            error_type TEXT,
            event_source TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_decisions_user_tool ON agent_decisions(user_id, tool_name, created_at DESC)")

    # ── 6. agent_trajectories ──
    op.execute("""
        CREATE TABLE agent_trajectories (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            conversation_id UUID,
            tool_sequence JSONB NOT NULL DEFAULT '[]'::jsonb,
            total_duration_ms INT NOT NULL DEFAULT 0,
            success BOOLEAN NOT NULL DEFAULT TRUE,
            efficiency_score NUMERIC(4,3),
            goal TEXT,
            intent_hash TEXT,
            intent_label TEXT,
            tool_count INT NOT NULL DEFAULT 0,
            is_golden BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_trajectories_intent ON agent_trajectories(user_id, intent_hash)")
    # At most one golden trajectory per (owner, intent)
    op.execute(
        "CREATE UNIQUE INDEX idx_agent_trajectories_golden "
        "ON agent_trajectories(user_id, intent_hash) WHERE is_golden = TRUE"
    )

    # ── 7. agent_rules ──
    op.execute("""
        CREATE TABLE agent_rules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            rule_text TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'general',
            confidence NUMERIC(4,3) NOT NULL DEFAULT 0.7,
            source TEXT NOT NULL DEFAULT 'correction',
            active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (user_id, rule_text)
        )
    """)
    op.execute("CREATE INDEX idx_agent_rules_active ON agent_rules(user_id, category) WHERE active = TRUE")

    # ── 8. agent_workflows ──
    op.execute("""
        CREATE TABLE agent_workflows (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            property_id UUID,
            tenancy_id UUID,
            workflow_type TEXT NOT NULL,
            current_step INT NOT NULL DEFAULT 1,
            total_steps INT NOT NULL,
            steps JSONB NOT NULL DEFAULT '[]'::jsonb,
            status TEXT NOT NULL DEFAULT 'active',
            next_action_at TIMESTAMPTZ,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX idx_agent_workflows_due "
        "ON agent_workflows(next_action_at) WHERE status = 'active'"
    )
    op.execute("CREATE INDEX idx_agent_workflows_user_type ON agent_workflows(user_id, workflow_type)")

    # ── 9. agent_autonomy_settings ──
    op.execute("""
        CREATE TABLE agent_autonomy_settings (
            user_id UUID PRIMARY KEY,
            preset TEXT NOT NULL DEFAULT 'balanced',
            category_overrides JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 10. tool_genome ──
    op.execute("""
        CREATE TABLE tool_genome (
            user_id UUID NOT NULL,
            tool_name TEXT NOT NULL,
            success_rate_ema NUMERIC(5,4) NOT NULL DEFAULT 0.5,
            avg_duration_ms NUMERIC(12,2) NOT NULL DEFAULT 0,
            total_executions INT NOT NULL DEFAULT 0,
            total_successes INT NOT NULL DEFAULT 0,
            total_failures INT NOT NULL DEFAULT 0,
            parameter_insights JSONB NOT NULL DEFAULT '{}'::jsonb,
            co_occurrence JSONB NOT NULL DEFAULT '{}'::jsonb,
            last_success_at TIMESTAMPTZ,
            last_error TEXT,
            last_error_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, tool_name)
        )
    """)

    # ── 11. agent_outcomes ──
    op.execute("""
        CREATE TABLE agent_outcomes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            tool_name TEXT NOT NULL,
            outcome_type TEXT NOT NULL,
            duration_ms INT NOT NULL DEFAULT 0,
            error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agent_outcomes_user_tool ON agent_outcomes(user_id, tool_name, created_at DESC)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS agent_outcomes")
    op.execute("DROP TABLE IF EXISTS tool_genome")
    op.execute("DROP TABLE IF EXISTS agent_autonomy_settings")
    op.execute("DROP TABLE IF EXISTS agent_workflows")
    op.execute("DROP TABLE IF EXISTS agent_rules")
    op.execute("DROP TABLE IF EXISTS agent_trajectories")
    op.execute("DROP TABLE IF EXISTS agent_decisions")
    op.execute("DROP TABLE IF EXISTS agent_pending_actions")
    op.execute("DROP TABLE IF EXISTS agent_messages")
    op.execute("DROP TABLE IF EXISTS agent_conversations")
    op.execute("DROP TABLE IF EXISTS agent_events")
    op.execute("DROP TABLE IF EXISTS agent_event_queue")
