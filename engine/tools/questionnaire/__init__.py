"""
Vendor questionnaire module - template generation, compliance scoring, cost
extraction and hybrid score blending.

Submodules:
- questionnaire: Per-vendor and batch scoring orchestration, CLI
- questionnaire_builder: Questionnaire / procurement workbook generation via openpyxl
- questionnaire_parse_excel: Vendor-filled workbook parsing and JSON round trip
- questionnaire_score: Compliance scoring and quality-characteristic mapping
- questionnaire_cost: Cost Breakdown extraction, TCO and pricing tier
- questionnaire_hybrid: AI / spreadsheet score blending
- questionnaire_models: Pydantic data models
- questionnaire_config: Vocabularies, constants and environment settings
"""
