"""
Run the BudgeNudge API locally with auto-reload.

Reads the same .env as the app (SUPABASE_URL, SUPABASE_PUBLISHABLE_KEY,
SUPABASE_SECRET_KEY, GOOGLE_API_KEY, CRON_SECRET).
"""

import uvicorn

if __name__ == "__main__":
    print("BudgeNudge API on http://localhost:8000")
    print()
    print("   Health:        GET  /health")
    print("   Docs:          GET  /docs")
    print("   SMS preview:   POST /sms/preview        {\"template_type\": \"recurring\"}")
    print("   Auto-tag cron: POST /cron/auto-ai-tag   (Authorization: Bearer $CRON_SECRET)")
    print()
    print("All other endpoints need a Supabase access token:")
    print("   Authorization: Bearer <token>")
    print()

    uvicorn.run(
        "budgenudge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
