"""
Exam Question Batch Generation Engine
question_engine/

Steps (per subject):
1. Key Pool          — round-robin API key rotation
2. Dispatcher        — one completion call per attempt, retry / rotate / model fallback
3. Prompt Composer   — scope, quotas, formatting rules, uniqueness token
4. Sanitizer         — extract + repair the JSON array in the model's reply
5. Quota Enforcer    — classify, truncate and pad to the exact MCQ/Numerical split
6. Orchestrator      — runs 3 → 2 → 4 → 5 for each subject of a paper
"""
