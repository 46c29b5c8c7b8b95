# Prompts for document metadata extraction.
# The AI answers from the workspace's embedded documents, so every prompt
# names the target document explicitly and asks for a single JSON object.
# Keys the extractor does not map to a column are kept in extraFields.

from pathlib import PurePosixPath

SPREADSHEET_EXTENSIONS = {".xlsx", ".xls", ".csv", ".tsv", ".ods"}
PRESENTATION_EXTENSIONS = {".pptx", ".ppt", ".odp", ".key"}
CODE_EXTENSIONS = {".js", ".ts", ".py", ".java", ".cpp", ".c", ".cs", ".rb", ".go", ".rs", ".php", ".sql"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".webp", ".tiff"}

DATA_TAXONOMY = (
    "Financial, Inventory, Sales, Customer, Timeline, Operational, Personnel, Project, Product, "
    "Order, Asset, Technical, Marketing, HR, Compliance, Quality, Manufacturing, Supply Chain"
)

DOCUMENT_PREAMBLE = """Please analyze the document named "{target}" in this workspace.

IMPORTANT: Focus your analysis ONLY on the document "{target}". Do not analyze other documents in the workspace.

"""

SPREADSHEET_PROMPT = r"""This is a SPREADSHEET file. Analyze the content.

CRITICAL INSTRUCTIONS:
- Focus on WHAT DATA this spreadsheet CONTAINS
- Use STANDARDIZED data type taxonomy: {taxonomy}
- Identify main ENTITIES (Customers, Products, Orders, Employees, Projects, Transactions, Assets)
- KEEP ALL TAGS SHORT (2-4 words max)

Return ONLY a JSON object:

{{
  "documentType": "Spreadsheet",
  "purpose": "string (what this spreadsheet tracks and its business context)",
  "keyTopics": ["string (2-4 words: Sales Data, Inventory)"],
  "dataCategories": ["string - USE ONLY THESE: {taxonomy}"],
  "primaryEntities": ["string (Customers, Products, Orders)"],
  "sheetNames": ["string (ALL sheet names)"],
  "columnHeaders": ["string (column headers from the main sheet)"],
  "aggregationLevel": "string (Detail-level, Daily Aggregates, Monthly Summaries, Annual Totals)",
  "metrics": ["string (Revenue, Quantity, Cost, Count)"],
  "hasTables": true,
  "hasFormulas": boolean,
  "stakeholders": ["string (2-3 words: teams/people who use this)"],
  "departments": ["string (Sales, Finance, Operations, HR)"],
  "mentionedSystems": ["string (1-3 words: Salesforce, SAP)"],
  "dateRange": "string (YYYY-MM-DD to YYYY-MM-DD or Q3 2024)",
  "timeframe": "string (Monthly, Quarterly, Annual, Weekly, Daily, YTD)"
}}"""

PRESENTATION_PROMPT = r"""This is a PRESENTATION file. Analyze the slides and content.

CRITICAL INSTRUCTIONS:
- COUNT actual slides
- Focus on DATA and CONTENT presented
- KEEP ALL TAGS SHORT (2-4 words max)

Return ONLY a JSON object:

{{
  "documentType": "Presentation",
  "purpose": "string (what data/content this presentation communicates)",
  "presentationType": "string (Sales Pitch, Training, Status Update, Data Report, Business Case)",
  "keyTopics": ["string (2-4 words: Q3 Results, Product Launch)"],
  "slideCount": number,
  "targetAudience": "string (executives, technical team, customers)",
  "dataCategories": ["string - USE ONLY THESE: {taxonomy}"],
  "primaryEntities": ["string (Products, Customers, Projects, Systems)"],
  "metrics": ["string (Revenue Growth, Customer Acquisition)"],
  "hasCharts": boolean,
  "hasImages": boolean,
  "hasTables": boolean,
  "stakeholders": ["string (2-3 words)"],
  "departments": ["string"],
  "mentionedSystems": ["string (1-3 words)"],
  "dateRange": "string (YYYY-MM-DD to YYYY-MM-DD or Q3 2024)",
  "timeframe": "string (Monthly Review, Quarterly Report)"
}}"""

CODE_PROMPT = r"""This is a CODE/SCRIPT file. Analyze the source code.

CRITICAL INSTRUCTIONS:
- Focus on DATA MODELS and API structure
- Identify main ENTITIES and OPERATIONS
- KEEP ALL TAGS SHORT (2-4 words max)

Return ONLY a JSON object:

{{
  "documentType": "Source Code",
  "purpose": "string (what this code does and its role)",
  "codeType": "string (Backend, Frontend, API, Database Schema, Script, Library, Test Suite)",
  "programmingLanguage": "string",
  "primaryEntities": ["string (data models: User, Order, Product)"],
  "keyOperations": ["string (2-3 words: Create Order, Fetch User)"],
  "apiEndpoints": ["string (/api/customers, GET /orders)"],
  "databaseTables": ["string (users, orders)"],
  "dataCategories": ["string - USE ONLY THESE: {taxonomy}"],
  "mentionedSystems": ["string (PostgreSQL, Redis, AWS S3)"],
  "hasCodeSamples": true
}}"""

IMAGE_PROMPT = r"""This is an IMAGE file. Analyze visible elements.

CRITICAL INSTRUCTIONS:
- Describe visible data, systems, and structure
- KEEP ALL TAGS SHORT (2-4 words max)

Return ONLY a JSON object:

{{
  "documentType": "Image",
  "purpose": "string (what this image shows and its use)",
  "imageType": "string (Screenshot, Diagram, Chart, Mockup, Flowchart, Whiteboard)",
  "imageContent": "string (description of visible elements and data)",
  "visibleData": ["string (Revenue Chart, User Count)"],
  "mentionedSystems": ["string (1-3 words)"],
  "stakeholders": ["string (2-3 words)"],
  "hasImages": true
}}"""

DOCUMENT_PROMPT = r"""This is a DOCUMENT file. Analyze the ACTUAL content thoroughly.

CRITICAL INSTRUCTIONS:
- Focus on WHAT DATA this document CONTAINS
- Use STANDARDIZED data type taxonomy: {taxonomy}
- For stakeholders: identify PEOPLE, DEPARTMENTS, TEAMS mentioned
- For systems: identify SOFTWARE, APPLICATIONS, PLATFORMS discussed
- KEEP ALL TAGS SHORT (2-4 words max)

Return ONLY a JSON object with this structure:

{{
  "documentType": "string (Business Report, Meeting Notes, Proposal, Contract, Tech Spec, Requirements)",
  "purpose": "string (1-2 sentences: what information this document contains and its use)",
  "keyTopics": ["string (2-4 words: Q3 Results, API Design, Budget Planning)"],
  "dataCategories": ["string - USE ONLY THESE: {taxonomy}"],
  "primaryEntities": ["string (Customers, Products, Orders, Projects, Employees)"],
  "dataStructure": "string (Narrative document, Tabular data, Mixed format, Forms/Templates)",
  "mentionedSystems": ["string (1-3 words: Salesforce, Azure, Jira)"],
  "stakeholders": ["string (2-3 words: Sales Team, Engineering)"],
  "departments": ["string (Sales, Engineering, Finance, HR)"],
  "metrics": ["string (Revenue, Units Sold, Response Time)"],
  "dateRange": "string (YYYY-MM-DD to YYYY-MM-DD or Q3 2024)",
  "meetingDate": "string (if meeting notes: YYYY-MM-DD)",
  "timeframe": "string (Monthly, Quarterly, Annual, YTD)",
  "estimatedPageCount": number,
  "estimatedWordCount": number,
  "hasTables": boolean,
  "hasImages": boolean,
  "hasCodeSamples": boolean
}}"""

CLOSING_REQUIREMENTS = r"""

CRITICAL REQUIREMENTS:
- Analyze the COMPLETE document content, not just a sample
- For stakeholders: ONLY include people, departments or teams EXPLICITLY mentioned
- For systems: ONLY include software that is SPECIFICALLY named in the document
- KEEP ALL TAGS SHORT: Maximum 2-4 words per tag

Return ONLY a valid JSON object with the exact structure specified above. No markdown formatting, no additional text, just pure JSON."""


def document_kind(filename: str) -> str:
    """Classify a filename as spreadsheet, presentation, code, image or document."""
    ext = PurePosixPath(filename).suffix.lower()
    if ext in SPREADSHEET_EXTENSIONS:
        return "spreadsheet"
    if ext in PRESENTATION_EXTENSIONS:
        return "presentation"
    if ext in CODE_EXTENSIONS:
        return "code"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    return "document"


_PROMPTS_BY_KIND = {
    "spreadsheet": SPREADSHEET_PROMPT,
    "presentation": PRESENTATION_PROMPT,
    "code": CODE_PROMPT,
    "image": IMAGE_PROMPT,
    "document": DOCUMENT_PROMPT,
}


def build_document_analysis_prompt(filename: str, target_document: str) -> str:
    """Prompt asking for a JSON description of one workspace document.

    Args:
        filename: Local filename, used to pick the file-type specific prompt
        target_document: Name of the document inside the workspace
    """
    body = _PROMPTS_BY_KIND[document_kind(filename)].format(taxonomy=DATA_TAXONOMY)
    return DOCUMENT_PREAMBLE.format(target=target_document) + body + CLOSING_REQUIREMENTS
