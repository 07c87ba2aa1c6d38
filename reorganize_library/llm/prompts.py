"""
Prompt builder for LLM-based placement planning.
"""

import json

from ..models import LibraryIndex, SourceOverview


def build_plan_prompt(overview: SourceOverview, index: LibraryIndex) -> str:
    """
    Build the planning prompt.

    The model sees the full SourceOverview and LibraryIndex as JSON and must
    answer with a Plan object.
    """
    payload = json.dumps(
        {"source": overview.to_dict(), "library": index.to_dict()},
        indent=2,
        ensure_ascii=False,
    )

    return f"""You are an expert file librarian. Sort every top-level item of an unsorted
SOURCE folder into a LIBRARY that has exactly two levels: Category/Subcategory.

## Input

"source.entries" lists the top-level items of SOURCE. Files carry their size,
extension and content type. Directories carry file/folder counts, a few sample
children and their largest files ("top_big_files"), which hint at their content.

"library.categories" lists the existing categories and their subcategories.
The subcategory "_root" stands for files kept directly in the category.

{payload}

## Rules

1. Each placement moves ONE whole top-level item. "path" must be copied
   character-for-character from a "rel_path" in source.entries.
2. Never split a directory and never place the same path twice.
3. Prefer existing categories and subcategories. Use "subcategory": null to put
   an item directly in a category.
4. Any category or subcategory that does not exist yet MUST also be listed in
   "new_folders".
5. Names are single folder names: no slashes and none of  < > : " | ? *
6. Leave an item out if you cannot tell where it belongs.

## Output Format

Return ONLY a valid JSON object:

{{
  "placements": [
    {{
      "path": "exact rel_path from source.entries",
      "category": "Category",
      "subcategory": "Subcategory or null",
      "reason": "Brief reason"
    }}
  ],
  "new_folders": [
    {{"category": "Category", "subcategory": "Subcategory or null", "reason": "Brief reason"}}
  ],
  "notes": "Anything the user should know"
}}

If nothing should move, return:
{{"placements": [], "new_folders": [], "notes": ""}}
"""
