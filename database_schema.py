"""
SQL schema for usage tracking, profiles and quota RPCs.
Run these queries in your Supabase SQL editor.
"""

CREATE_USAGE_TABLES = """
-- One counter row per signed-in user per UTC day
CREATE TABLE IF NOT EXISTS tryon_usage (
    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
    day DATE NOT NULL,
    count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (user_id, day)
);

-- One counter row per anonymous cookie id per UTC day
CREATE TABLE IF NOT EXISTS tryon_usage_anon (
    anon_id TEXT NOT NULL,
    day DATE NOT NULL,
    count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (anon_id, day)
);

-- Only the service role touches these tables (through the RPCs below)
ALTER TABLE tryon_usage ENABLE ROW LEVEL SECURITY;
ALTER TABLE tryon_usage_anon ENABLE ROW LEVEL SECURITY;

DROP POLICY IF EXISTS tryon_usage_select_own ON tryon_usage;
CREATE POLICY tryon_usage_select_own ON tryon_usage
    FOR SELECT
    USING (auth.uid() = user_id);
"""

CREATE_PROFILES_TABLE = """
CREATE TABLE IF NOT EXISTS profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    email TEXT NOT NULL,
    free_tries_used INTEGER DEFAULT 0,
    paid_tries_remaining INTEGER NOT NULL DEFAULT 0 CHECK (paid_tries_remaining >= 0),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

ALTER TABLE profiles ENABLE ROW LEVEL SECURITY;

DROP POLICY IF EXISTS profiles_select_own ON profiles;
CREATE POLICY profiles_select_own ON profiles
    FOR SELECT
    USING (auth.uid() = id);
"""

CREATE_QUOTA_FUNCTIONS = """
-- Conditional increment: the counter only moves while it is below the limit.
-- A concurrent UPDATE re-checks the WHERE clause after waiting on the row lock.
CREATE OR REPLACE FUNCTION check_and_increment_tryons(p_user_id UUID, daily_limit INTEGER)
RETURNS JSON
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
DECLARE
    today DATE := (NOW() AT TIME ZONE 'utc')::DATE;
    new_count INTEGER;
    current_count INTEGER;
BEGIN
    INSERT INTO tryon_usage (user_id, day, count)
    VALUES (p_user_id, today, 0)
    ON CONFLICT (user_id, day) DO NOTHING;

    UPDATE tryon_usage
    SET count = count + 1, updated_at = NOW()
    WHERE user_id = p_user_id AND day = today AND count < daily_limit
    RETURNING count INTO new_count;

    IF new_count IS NULL THEN
        SELECT count INTO current_count
        FROM tryon_usage WHERE user_id = p_user_id AND day = today;

        RETURN json_build_object(
            'allowed', FALSE,
            'count', current_count,
            'limit', daily_limit,
            'remaining', GREATEST(0, daily_limit - current_count)
        );
    END IF;

    RETURN json_build_object(
        'allowed', TRUE,
        'count', new_count,
        'limit', daily_limit,
        'remaining', GREATEST(0, daily_limit - new_count)
    );
END;
$$;

CREATE OR REPLACE FUNCTION check_and_increment_tryons_anon(p_anon_id TEXT, daily_limit INTEGER)
RETURNS JSON
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
DECLARE
    today DATE := (NOW() AT TIME ZONE 'utc')::DATE;
    new_count INTEGER;
    current_count INTEGER;
BEGIN
    INSERT INTO tryon_usage_anon (anon_id, day, count)
    VALUES (p_anon_id, today, 0)
    ON CONFLICT (anon_id, day) DO NOTHING;

    UPDATE tryon_usage_anon
    SET count = count + 1, updated_at = NOW()
    WHERE anon_id = p_anon_id AND day = today AND count < daily_limit
    RETURNING count INTO new_count;

    IF new_count IS NULL THEN
        SELECT count INTO current_count
        FROM tryon_usage_anon WHERE anon_id = p_anon_id AND day = today;

        RETURN json_build_object(
            'allowed', FALSE,
            'count', current_count,
            'limit', daily_limit,
            'remaining', GREATEST(0, daily_limit - current_count)
        );
    END IF;

    RETURN json_build_object(
        'allowed', TRUE,
        'count', new_count,
        'limit', daily_limit,
        'remaining', GREATEST(0, daily_limit - new_count)
    );
END;
$$;

-- Refunds, floored at zero
CREATE OR REPLACE FUNCTION decrement_tryons(p_user_id UUID)
RETURNS VOID
LANGUAGE sql
SECURITY DEFINER
AS $$
    UPDATE tryon_usage
    SET count = GREATEST(0, count - 1), updated_at = NOW()
    WHERE user_id = p_user_id AND day = (NOW() AT TIME ZONE 'utc')::DATE;
$$;

CREATE OR REPLACE FUNCTION decrement_tryons_anon(p_anon_id TEXT)
RETURNS VOID
LANGUAGE sql
SECURITY DEFINER
AS $$
    UPDATE tryon_usage_anon
    SET count = GREATEST(0, count - 1), updated_at = NOW()
    WHERE anon_id = p_anon_id AND day = (NOW() AT TIME ZONE 'utc')::DATE;
$$;

-- Read-only usage
CREATE OR REPLACE FUNCTION get_tryon_usage(p_user_id UUID)
RETURNS JSON
LANGUAGE sql
SECURITY DEFINER
AS $$
    SELECT json_build_object(
        'count', COALESCE((
            SELECT count FROM tryon_usage
            WHERE user_id = p_user_id AND day = (NOW() AT TIME ZONE 'utc')::DATE
        ), 0),
        'date', (NOW() AT TIME ZONE 'utc')::DATE
    );
$$;

CREATE OR REPLACE FUNCTION get_tryon_usage_anon(p_anon_id TEXT)
RETURNS JSON
LANGUAGE sql
SECURITY DEFINER
AS $$
    SELECT json_build_object(
        'count', COALESCE((
            SELECT count FROM tryon_usage_anon
            WHERE anon_id = p_anon_id AND day = (NOW() AT TIME ZONE 'utc')::DATE
        ), 0),
        'date', (NOW() AT TIME ZONE 'utc')::DATE
    );
$$;
"""

CREATE_PAID_TRYON_FUNCTIONS = """
CREATE OR REPLACE FUNCTION consume_paid_tryon(p_user_id UUID)
RETURNS JSON
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
DECLARE
    new_balance INTEGER;
BEGIN
    UPDATE profiles
    SET paid_tries_remaining = paid_tries_remaining - 1
    WHERE id = p_user_id AND paid_tries_remaining > 0
    RETURNING paid_tries_remaining INTO new_balance;

    RETURN json_build_object(
        'allowed', new_balance IS NOT NULL,
        'paid_remaining', COALESCE(new_balance, 0)
    );
END;
$$;

CREATE OR REPLACE FUNCTION refund_paid_tryon(p_user_id UUID)
RETURNS VOID
LANGUAGE sql
SECURITY DEFINER
AS $$
    UPDATE profiles
    SET paid_tries_remaining = paid_tries_remaining + 1
    WHERE id = p_user_id;
$$;

CREATE OR REPLACE FUNCTION add_paid_tryons(p_user_id UUID, p_tries INTEGER)
RETURNS JSON
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
DECLARE
    new_balance INTEGER;
BEGIN
    -- Buyers who never loaded their profile still get credited
    INSERT INTO profiles (id, email, paid_tries_remaining)
    SELECT u.id, COALESCE(u.email, ''), p_tries
    FROM auth.users u WHERE u.id = p_user_id
    ON CONFLICT (id) DO UPDATE
    SET paid_tries_remaining = profiles.paid_tries_remaining + EXCLUDED.paid_tries_remaining
    RETURNING paid_tries_remaining INTO new_balance;

    RETURN json_build_object('paid_remaining', COALESCE(new_balance, 0));
END;
$$;
"""

# Every RPC trusts its id arguments, so only the API's service-role key may call them.
# Supabase grants EXECUTE on new public functions to anon and authenticated.
RPC_SIGNATURES = [
    "check_and_increment_tryons(UUID, INTEGER)",
    "check_and_increment_tryons_anon(TEXT, INTEGER)",
    "decrement_tryons(UUID)",
    "decrement_tryons_anon(TEXT)",
    "get_tryon_usage(UUID)",
    "get_tryon_usage_anon(TEXT)",
    "consume_paid_tryon(UUID)",
    "refund_paid_tryon(UUID)",
    "add_paid_tryons(UUID, INTEGER)",
]

RESTRICT_RPC_EXECUTE = "\n".join(
    f"REVOKE EXECUTE ON FUNCTION {signature} FROM PUBLIC, anon, authenticated;\n"
    f"GRANT EXECUTE ON FUNCTION {signature} TO service_role;"
    for signature in RPC_SIGNATURES
)

CREATE_UPDATED_AT_TRIGGER = """
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ language 'plpgsql';

DROP TRIGGER IF EXISTS update_profiles_updated_at ON profiles;
CREATE TRIGGER update_profiles_updated_at
    BEFORE UPDATE ON profiles
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();
"""

# Combined setup script
FULL_SCHEMA_SETUP = f"""
-- =====================================================
-- Makeup Atelier Usage Schema Setup
-- =====================================================
-- Run this in your Supabase SQL Editor
-- =====================================================

{CREATE_USAGE_TABLES}

{CREATE_PROFILES_TABLE}

{CREATE_QUOTA_FUNCTIONS}

{CREATE_PAID_TRYON_FUNCTIONS}

{RESTRICT_RPC_EXECUTE}

{CREATE_UPDATED_AT_TRIGGER}

-- =====================================================
-- Setup Complete!
-- =====================================================
"""

if __name__ == "__main__":
    print(FULL_SCHEMA_SETUP)
