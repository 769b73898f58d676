"""
Setup instructions for the helper SQL functions the checks call.

The MFA and RLS checks need a SECURITY DEFINER function installed in the
target project; when it is missing the endpoints answer with these
instructions instead of a result.
"""

from supabase_compliance_checker.reporting.models import SetupInstructions

SETUP_STEPS = [
    "Go to your Supabase dashboard",
    "Navigate to the SQL Editor",
    "Copy and paste the SQL function above",
    "Run the query to create the function",
    "Return here and run the compliance check again",
]

MFA_FUNCTION = "get_user_mfa_status"
RLS_FUNCTION = "check_table_rls_status"

MFA_FUNCTION_SQL = """CREATE OR REPLACE FUNCTION get_user_mfa_status(target_user_id uuid)
RETURNS TABLE(
user_id uuid,
mfa_enabled boolean,
factor_count integer,
factors json
)
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
BEGIN
RETURN QUERY
SELECT
target_user_id as user_id,
CASE
    WHEN COUNT(af.id) > 0 THEN true
    ELSE false
END as mfa_enabled,
COUNT(af.id)::integer as factor_count,
COALESCE(
    json_agg(
    json_build_object(
        'id', af.id,
        'friendly_name', af.friendly_name,
        'factor_type', af.factor_type,
        'status', af.status,
        'created_at', af.created_at,
        'updated_at', af.updated_at
    )
    ) FILTER (WHERE af.id IS NOT NULL),
    '[]'::json
) as factors
FROM auth.mfa_factors af
WHERE af.user_id = target_user_id
AND af.status = 'verified'
GROUP BY target_user_id;
END;
$$;"""

RLS_FUNCTION_SQL = """CREATE OR REPLACE FUNCTION check_table_rls_status()
RETURNS TABLE(
schema text,
"table" text,
rls_enabled boolean,
status text
)
LANGUAGE plpgsql
SECURITY DEFINER
AS $$
BEGIN
RETURN QUERY
SELECT
  t.schemaname::text as schema,
  t.tablename::text as "table",
  t.rowsecurity as rls_enabled,
  CASE
    WHEN t.rowsecurity THEN 'pass'::text
    ELSE 'fail'::text
  END as status
FROM pg_tables t
WHERE t.schemaname = 'public'
  AND t.tablename NOT LIKE 'pg_%'
  AND t.tablename NOT LIKE '_realtime_%'
ORDER BY t.tablename;
END;
$$;"""

MFA_SETUP = SetupInstructions(
    title="MFA Function Setup Required",
    description=(
        "To check MFA status, you need to create a custom function in your Supabase database."
    ),
    sql=MFA_FUNCTION_SQL,
    steps=SETUP_STEPS,
)

RLS_SETUP = SetupInstructions(
    title="SQL Function Setup Required",
    description=(
        "To check RLS status, you need to create a custom function in your Supabase database."
    ),
    sql=RLS_FUNCTION_SQL,
    steps=SETUP_STEPS,
)
