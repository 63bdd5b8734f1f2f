"""
Transaction rule CRUD and rule-testing endpoints.

Endpoints:
- GET /transaction-rules - List the user's rules in evaluation order
- POST /transaction-rules - Create a rule
- POST /transaction-rules/test - Dry-run a rule against a merchant string
- GET /transaction-rules/suggestions - Suggest rules for a merchant string
- POST /transaction-rules/preview - Apply the user's active rules to sample transactions
- GET /transaction-rules/{id} - Get a single rule
- PATCH /transaction-rules/{id} - Update a rule
- DELETE /transaction-rules/{id} - Delete a rule
"""

import logging
from typing import Annotated, Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_supabase_client
from budgenudge.services.rule_engine import (
    apply_rules_to_transactions,
    evaluate_rule,
    generate_rule_suggestions,
    validate_rule_definition,
)
from budgenudge.services.transaction_rule_service import (
    create_rule,
    delete_rule,
    get_rule_by_id,
    get_user_rules,
    rule_name_exists,
    update_rule,
)
from budgenudge.schemas.transaction_rules import (
    RulePreviewRequest,
    RulePreviewResponse,
    RuleSuggestionsResponse,
    RuleTestRequest,
    RuleTestResponse,
    RuleTestResultModel,
    TransactionRuleCreateRequest,
    TransactionRuleCreateResponse,
    TransactionRuleDeleteResponse,
    TransactionRuleListResponse,
    TransactionRuleResponse,
    TransactionRuleUpdateRequest,
    TransactionRuleUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transaction-rules", tags=["transaction-rules"])


def _as_str(v: Any) -> str:
    return str(v) if v is not None else ""


def _to_rule_response(row: Dict[str, Any]) -> TransactionRuleResponse:
    try:
        priority = int(row.get("priority")) if row.get("priority") is not None else 0
    except (ValueError, TypeError):
        priority = 0

    return TransactionRuleResponse(
        id=_as_str(row.get("id")),
        user_id=_as_str(row.get("user_id")),
        rule_name=_as_str(row.get("rule_name")),
        rule_type=row.get("rule_type", "merchant_normalize"),  # type: ignore
        pattern_type=row.get("pattern_type", "contains"),  # type: ignore
        pattern_value=_as_str(row.get("pattern_value")),
        normalized_merchant_name=row.get("normalized_merchant_name"),
        override_category=row.get("override_category"),
        priority=priority,
        is_active=bool(row.get("is_active", True)),
        auto_generated=bool(row.get("auto_generated", False)),
        description=row.get("description"),
        created_at=_as_str(row.get("created_at")),
        updated_at=_as_str(row.get("updated_at")),
    )


def _validation_error(details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "validation_error", "details": details}
    )


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "details": "Transaction rule not found"}
    )


@router.get(
    "",
    response_model=TransactionRuleListResponse,
    status_code=status.HTTP_200_OK,
    summary="List transaction rules",
    description="""
    Retrieve the authenticated user's transaction rules.

    Rules are returned in evaluation order: highest priority first, then
    oldest first. Pass active_only=true to hide disabled rules.
    """
)
async def list_transaction_rules(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    active_only: Annotated[bool, Query(description="Only return active rules")] = False
) -> TransactionRuleListResponse:
    """List transaction rules for the authenticated user."""
    logger.info(f"Listing transaction rules for user {auth_user.user_id}")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rules = await get_user_rules(
            supabase_client=supabase_client,
            user_id=auth_user.user_id,
            active_only=active_only
        )

        rule_responses = [_to_rule_response(r) for r in rules]
        return TransactionRuleListResponse(rules=rule_responses, count=len(rule_responses))

    except Exception as e:
        logger.error(f"Failed to fetch transaction rules: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve transaction rules"
            }
        )


@router.post(
    "",
    response_model=TransactionRuleCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a transaction rule",
    description="""
    Create a merchant normalization, category override, or combined rule.

    - merchant_normalize and combined rules require normalized_merchant_name
    - category_override and combined rules require override_category
    - regex patterns must compile
    - rule_name must be unique for the user (409 otherwise)
    """
)
async def create_transaction_rule(
    request: TransactionRuleCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TransactionRuleCreateResponse:
    """Create a new transaction rule."""
    logger.info(f"Creating transaction rule for user {auth_user.user_id}: {request.rule_name}")

    try:
        validate_rule_definition(
            rule_type=request.rule_type,
            pattern_type=request.pattern_type,
            pattern_value=request.pattern_value,
            normalized_merchant_name=request.normalized_merchant_name,
            override_category=request.override_category
        )
    except ValueError as e:
        raise _validation_error(str(e))

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        if await rule_name_exists(supabase_client, auth_user.user_id, request.rule_name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "error": "conflict",
                    "details": f"A rule named '{request.rule_name}' already exists"
                }
            )

        created = await create_rule(
            supabase_client=supabase_client,
            user_id=auth_user.user_id,
            rule_name=request.rule_name,
            rule_type=request.rule_type,
            pattern_type=request.pattern_type,
            pattern_value=request.pattern_value,
            normalized_merchant_name=request.normalized_merchant_name,
            override_category=request.override_category,
            priority=request.priority,
            description=request.description
        )

        return TransactionRuleCreateResponse(
            status="CREATED",
            rule=_to_rule_response(created),
            message="Transaction rule created successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create transaction rule: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "create_error",
                "details": "Failed to create transaction rule"
            }
        )


@router.post(
    "/test",
    response_model=RuleTestResponse,
    status_code=status.HTTP_200_OK,
    summary="Test a rule definition",
    description="""
    Dry-run a rule against a merchant string without saving it.

    Invalid regex patterns are reported in test_result.error rather than
    failing the request.
    """
)
async def dry_run_transaction_rule(
    request: RuleTestRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> RuleTestResponse:
    """Evaluate a rule definition against a sample merchant."""
    logger.info(f"Testing rule pattern for user {auth_user.user_id}: {request.pattern_type}")

    result = evaluate_rule(
        merchant_name=request.merchant_name,
        pattern_type=request.pattern_type,
        pattern_value=request.pattern_value,
        normalized_merchant_name=request.normalized_merchant_name,
        override_category=request.override_category
    )

    return RuleTestResponse(test_result=RuleTestResultModel(**result), input=request)


@router.get(
    "/suggestions",
    response_model=RuleSuggestionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Suggest rules for a merchant",
    description="""
    Suggest normalization rules for a raw merchant string, for example
    stripping store numbers or recognising well-known chains.
    """
)
async def get_rule_suggestions(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    merchant_name: Annotated[str, Query(min_length=1, description="Raw merchant string")]
) -> RuleSuggestionsResponse:
    """Return rule suggestions for a merchant string."""
    logger.info(f"Generating rule suggestions for user {auth_user.user_id}")

    suggestions = generate_rule_suggestions(merchant_name)
    return RuleSuggestionsResponse(merchant_name=merchant_name, suggestions=suggestions)  # type: ignore


@router.post(
    "/preview",
    response_model=RulePreviewResponse,
    status_code=status.HTTP_200_OK,
    summary="Preview rules on transactions",
    description="""
    Apply the user's active rules to a list of transactions and return the
    effective merchant name and category for each. Nothing is written.
    """
)
async def preview_transaction_rules(
    request: RulePreviewRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> RulePreviewResponse:
    """Run the rule engine over caller-supplied transactions."""
    logger.info(
        f"Previewing rules on {len(request.transactions)} transactions for user {auth_user.user_id}"
    )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rules = await get_user_rules(
            supabase_client=supabase_client,
            user_id=auth_user.user_id,
            active_only=True
        )

        processed = apply_rules_to_transactions(
            [t.model_dump() for t in request.transactions],
            rules
        )

        return RulePreviewResponse(
            transactions=processed,
            rules_evaluated=len(rules),
            transactions_changed=sum(1 for p in processed if p["rule_applied"])
        )

    except Exception as e:
        logger.error(f"Failed to preview transaction rules: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to load transaction rules"
            }
        )


@router.get(
    "/{rule_id}",
    response_model=TransactionRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a transaction rule"
)
async def get_transaction_rule(
    rule_id: Annotated[str, Path(description="Transaction rule UUID")],
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TransactionRuleResponse:
    """Get a transaction rule by ID."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rule = await get_rule_by_id(supabase_client, auth_user.user_id, rule_id)
        if not rule:
            raise _not_found()
        return _to_rule_response(rule)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch transaction rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "fetch_error",
                "details": "Failed to retrieve transaction rule"
            }
        )


@router.patch(
    "/{rule_id}",
    response_model=TransactionRuleUpdateResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a transaction rule",
    description="""
    Partially update a rule. The merged rule must still satisfy the
    creation requirements, and a new rule_name must stay unique.
    """
)
async def update_transaction_rule(
    rule_id: Annotated[str, Path(description="Transaction rule UUID")],
    request: TransactionRuleUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TransactionRuleUpdateResponse:
    """Update a transaction rule."""
    logger.info(f"Updating transaction rule {rule_id} for user {auth_user.user_id}")

    updates = request.model_dump(exclude_none=True)
    if not updates:
        raise _validation_error("At least one field must be provided for update")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        existing = await get_rule_by_id(supabase_client, auth_user.user_id, rule_id)
        if not existing:
            raise _not_found()

        merged = {**existing, **updates}
        try:
            validate_rule_definition(
                rule_type=merged.get("rule_type", ""),
                pattern_type=merged.get("pattern_type", ""),
                pattern_value=merged.get("pattern_value", ""),
                normalized_merchant_name=merged.get("normalized_merchant_name"),
                override_category=merged.get("override_category")
            )
        except ValueError as e:
            raise _validation_error(str(e))

        new_name = updates.get("rule_name")
        if new_name and new_name != existing.get("rule_name"):
            if await rule_name_exists(supabase_client, auth_user.user_id, new_name, exclude_rule_id=rule_id):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={
                        "error": "conflict",
                        "details": f"A rule named '{new_name}' already exists"
                    }
                )

        updated = await update_rule(supabase_client, auth_user.user_id, rule_id, **updates)
        if not updated:
            raise _not_found()

        return TransactionRuleUpdateResponse(
            status="UPDATED",
            rule=_to_rule_response(updated),
            message="Transaction rule updated successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update transaction rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "update_error",
                "details": "Failed to update transaction rule"
            }
        )


@router.delete(
    "/{rule_id}",
    response_model=TransactionRuleDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a transaction rule"
)
async def delete_transaction_rule(
    rule_id: Annotated[str, Path(description="Transaction rule UUID")],
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TransactionRuleDeleteResponse:
    """Delete a transaction rule."""
    logger.info(f"Deleting transaction rule {rule_id} for user {auth_user.user_id}")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        deleted = await delete_rule(supabase_client, auth_user.user_id, rule_id)
        if not deleted:
            raise _not_found()

        return TransactionRuleDeleteResponse(
            status="DELETED",
            rule_id=rule_id,
            message="Transaction rule deleted successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete transaction rule {rule_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "delete_error",
                "details": "Failed to delete transaction rule"
            }
        )
