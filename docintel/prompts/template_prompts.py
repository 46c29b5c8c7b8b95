# Prompts for template requirement analysis.
# A template is the mirror image of a document: instead of describing what
# data a file contains, the answer describes what data it needs.

from pathlib import PurePosixPath

from docintel.prompts.metadata_prompts import DATA_TAXONOMY

TEMPLATE_PREAMBLE = r"""You are an expert document automation specialist analyzing a TEMPLATE file named "{template_name}".

CRITICAL CONTEXT: This is a TEMPLATE, not a data document. Your job is to understand:
1. WHAT this template is designed to generate
2. WHAT DATA INPUTS it needs (data types, entities, structure)
3. WHAT PROCESSING is needed (aggregation, filtering, comparisons, time ordering)
4. WHO will use the output

IGNORE placeholder/sample data values in the template. Focus on the TEMPLATE STRUCTURE and DATA REQUIREMENTS.

"""

TEMPLATE_FIELDS = r"""{{
  "templateType": "string ({template_types})",
  "purpose": "string (1-2 sentences: what this template generates and its business purpose)",
  "outputFormat": "{output_format}",
  "requiredDataTypes": ["string - USE ONLY THESE: {taxonomy}"],
  "expectedEntities": ["string - BE SPECIFIC: Products, Orders, Customers, Transactions, Employees, Projects, Assets, Vendors, Invoices"],
  "dataStructureNeeds": ["{structure_examples}"],
  "hasSections": ["string (section or sheet names)"],
  "hasCharts": true/false,
  "hasTables": true/false,
  "hasFormulas": true/false,
  "tableCount": number,
  "chartTypes": ["Bar", "Line", "Pie"],
  "styleTheme": "Corporate" or "Modern" or "Minimal" or "Technical",
  "pageOrientation": "Landscape" or "Portrait",
  "requiresAggregation": true/false (needs SUM, AVG, COUNT, totals?),
  "requiresTimeSeries": true/false (needs date-based ordering/grouping?),
  "requiresComparisons": true/false (needs before/after, period-over-period, variance?),
  "requiresFiltering": true/false (needs filtered subsets of data?),
  "complexity": "Simple" or "Moderate" or "Complex",
  "estimatedGenerationTime": "Fast (<5s)" or "Moderate (5-15s)" or "Slow (>15s)",
  "targetAudience": "Executives" or "Technical Teams" or "Customers" or "Internal Staff" or "Finance Team",
  "useCases": ["Monthly reporting", "Budget planning"],
  "compatibleDocumentTypes": ["Financial Reports", "Inventory Lists", "Meeting Notes", "Sales Data"],
  "recommendedWorkspaceSize": "Small (<10 docs)" or "Medium (10-50)" or "Large (>50)"
}}"""

SPREADSHEET_TEMPLATE_PROMPT = r"""This is a SPREADSHEET TEMPLATE. Analyze what DATA this template NEEDS to generate its output.

EXAMPLES:
- Product columns, quantity, cost and SUM formulas -> requiredDataTypes: ["Inventory", "Financial", "Product"], requiresAggregation: true
- Monthly columns and line charts -> requiredDataTypes: ["Timeline", "Financial"], requiresTimeSeries: true
- Q1 vs Q2 layout -> requiresComparisons: true

Return ONLY this JSON structure:

"""

DOCUMENT_TEMPLATE_PROMPT = r"""This is a WORD DOCUMENT TEMPLATE. Analyze what DATA this template NEEDS to generate its output.

EXAMPLES:
- "Customer Name", "Order #" and a product table -> requiredDataTypes: ["Customer", "Sales", "Order", "Product"]
- Monthly progress sections -> requiredDataTypes: ["Timeline", "Project"], requiresTimeSeries: true
- Two proposals side by side -> requiresComparisons: true

Return ONLY this JSON structure:

"""

GENERIC_TEMPLATE_PROMPT = r"""Analyze this template file to understand its purpose and requirements.

Return ONLY this JSON structure:

"""

TEMPLATE_CLOSING = r"""

**CRITICAL INSTRUCTIONS:**
- Return ONLY the JSON object, no commentary
- Use the standardized taxonomy for requiredDataTypes
- Booleans must be true or false, numbers must be bare numbers

RESPOND WITH THE JSON OBJECT NOW:"""


def build_template_analysis_prompt(filename: str, template_name: str) -> str:
    """Prompt asking for the data requirements of a template file."""
    ext = PurePosixPath(filename).suffix.lower()
    if ext in {".xlsx", ".xls", ".csv"}:
        body = SPREADSHEET_TEMPLATE_PROMPT
        template_types = "Report, Dashboard, Invoice, Analysis, Tracker, Budget, Forecast"
        structure_examples = '", "'.join(["Tabular data", "Time series", "Aggregated summaries", "Transaction list"])
    elif ext in {".docx", ".doc"}:
        body = DOCUMENT_TEMPLATE_PROMPT
        template_types = "Report, Letter, Invoice, Proposal, Contract, Summary, Meeting Minutes, Spec"
        structure_examples = '", "'.join(["Narrative text", "Tabular data", "Bullet lists", "Key-value pairs"])
    else:
        body = GENERIC_TEMPLATE_PROMPT
        template_types = "type of template"
        structure_examples = "data structure requirements"

    fields = TEMPLATE_FIELDS.format(
        template_types=template_types,
        output_format=ext.lstrip(".") or "unknown",
        taxonomy=DATA_TAXONOMY,
        structure_examples=structure_examples,
    )
    return TEMPLATE_PREAMBLE.format(template_name=template_name) + body + fields + TEMPLATE_CLOSING
