"""Prompt templates for the AI collaborator.

Three tasks:
  - link extraction: ticket text -> design links (text only)
  - UX validation: implementation screenshot + design render -> per-component findings
  - matching: N screenshots + M designs -> one-to-one pairing

Templates with placeholders are filled with ``str.format``; literal JSON
braces in them are doubled.
"""

LINK_EXTRACTION_PROMPT = """\
You are analyzing a Jira ticket to find Figma design links.

Analyze the following Jira ticket content and extract ALL Figma links/URLs you can find.

Figma URLs typically look like:
- https://www.figma.com/file/...
- https://www.figma.com/design/...
- https://figma.com/file/...
- https://www.figma.com/proto/...
{extra_hosts}
Also look for:
- Shortened URLs that might be Figma links (like bit.ly, tinyurl, etc.)
- References to Figma with nearby URLs
- Embedded links in text

Copy every URL exactly as it appears in the ticket, query string included.

TICKET CONTENT:
{ticket_content}

Respond in JSON format:
{{
  "figmaLinks": ["url1", "url2"],
  "confidence": "high" | "medium" | "low",
  "context": "Brief explanation of where the links were found"
}}

If no Figma links are found, return empty array for figmaLinks with "low" confidence."""


UX_VALIDATION_SYSTEM_PROMPT = """\
You are a UX/UI design quality assurance expert. Your task is to perform a focused \
comparison between an input image (first image, the implementation screenshot) and a \
reference Figma design (second image).

FOCUS ON THESE 6 CRITERIA ONLY:

1. COMPONENT COMPARISON (MISSING & EXTRA)
   - Identify ALL components in the reference Figma image
   - Verify each reference component exists in the input image and list MISSING components
   - Identify any EXTRA components in the input image that are NOT in the reference
   - Components include: buttons, icons, headers, text blocks, images, forms, panels, \
navigation elements, markers, legends, etc.

2. GRAMMAR AND TEXT CORRECTNESS
   - Check all text in the input image for grammar, spelling and correctness
   - Compare text content with the Figma reference
   - If the Figma reference has incorrect text, mention it clearly

3. MAJOR COLOR DIFFERENCES
   - Background, component and text color differences
   - Ignore minor shade variations; report significant mismatches only

4. FIELD IMPLEMENTATION CHECK
   - Verify that all fields within components are implemented in the input image
   - Account for dynamic content that may differ (network names, user data, timestamps, IDs)
   - Check that the structure and presence of fields match, even if values differ

5. TYPOGRAPHY (FONT, STYLE, SIZE)
   - Only flag MAJOR differences (different font family, significantly different sizes)
   - Ignore 1-2px size differences and slight weight variations

6. OVERLAPPING BUTTONS/ELEMENTS
   - Check whether any element overlaps another because it is positioned incorrectly

BOUNDING BOXES:
Every bounding_box locates the finding in the INPUT image (first image), in percent \
of that image's width and height: {"x": left, "y": top, "width": w, "height": h}, \
all numbers between 0 and 100. Use null when the finding cannot be located \
(for example a component missing from the input).

Provide your response in the following JSON format:
{
  "reference_components": [
    {
      "name": "Component name from reference",
      "type": "button/header/text/image/icon/marker/panel/etc",
      "description": "Description of component location and purpose in reference",
      "found_in_input": true,
      "bounding_box": {"x": 10, "y": 5, "width": 30, "height": 8},
      "issues": {
        "missing_component": false,
        "missing_component_note": "Explanation if component is missing from input",
        "grammar_issues": ["Grammar/spelling errors in this component's text"],
        "text_mismatch": ["Text differences (note if Figma has errors)"],
        "major_color_differences": ["Major color differences"],
        "missing_fields": ["Fields that are missing"],
        "field_notes": "Notes about field implementation (accounting for dynamic content)",
        "typography_issues": ["Major typography differences"]
      },
      "status": "pass/warning/fail"
    }
  ],
  "extra_components_in_input": [
    {
      "name": "Extra component found in input but NOT in reference",
      "type": "button/header/text/image/icon/etc",
      "description": "Description of this extra component and its location",
      "bounding_box": {"x": 70, "y": 80, "width": 20, "height": 6},
      "severity": "minor/major"
    }
  ],
  "global_issues": {
    "background_color": {
      "has_difference": false,
      "reference_color": "Color description in reference",
      "input_color": "Color description in input",
      "note": "Description of the difference"
    },
    "color_issues": [{"description": "Color issue", "bounding_box": null}],
    "grammar_issues": [{"description": "Grammar/text issue", "bounding_box": null}],
    "typography_issues": [{"description": "Typography issue", "bounding_box": null}]
  },
  "overlapping_elements": [
    {
      "element_name": "Name/description of overlapping element",
      "overlaps_with": "What it overlaps with",
      "location": "Where the overlap occurs",
      "bounding_box": {"x": 40, "y": 60, "width": 15, "height": 5},
      "severity": "minor/major"
    }
  ],
  "summary": {
    "total_reference_components": 0,
    "components_found": 0,
    "components_missing": 0,
    "extra_components_count": 0,
    "grammar_issues_count": 0,
    "color_issues_count": 0,
    "typography_issues_count": 0,
    "overlapping_elements_count": 0,
    "total_issues": 0
  },
  "overall_status": "pass/warning/fail",
  "conclusion": "Overall assessment focusing on the 6 criteria"
}

Be THOROUGH. Identify ALL visible components. Return only the JSON object."""


UX_VALIDATION_USER_PROMPT = """\
Compare the input image (first image) against the reference Figma design (second image).
{context_block}
IMPORTANT:
1. List ALL components from the reference and check if each exists in the input
2. Find any EXTRA components in input that are NOT in the reference
3. Check background color and overall color scheme
4. Check for grammar/spelling issues in text
5. Check field implementation (ignore dynamic values like network names, IDs)
6. Check for major typography differences
7. Check for overlapping elements

Provide analysis in the requested JSON format."""


MATCHING_PROMPT = """\
You are a UI/UX expert tasked with matching implementation screenshots to their \
corresponding Figma design references.

You are provided with {screenshot_count} SCREENSHOT(S) followed by {design_count} \
FIGMA DESIGN(S), {total_count} images in total.

IMAGE ORDER:
- Images 1 to {screenshot_count}: implementation screenshots \
(Screenshot 0 to Screenshot {last_screenshot})
- Images {first_design_image} to {total_count}: Figma designs \
(Figma 0 to Figma {last_design})

YOUR TASK:
Analyze the visual content, layout, components and overall structure of each image \
to determine which screenshot corresponds to which Figma design.

Consider:
1. Overall page/screen layout and structure
2. Key UI components (buttons, forms, headers, navigation)
3. Color schemes and visual styling
4. Content areas and their arrangement
5. Specific UI elements that are unique to each design

IMPORTANT RULES:
- Each screenshot matches at most ONE Figma design
- Each Figma design matches at most ONE screenshot
- Mark screenshots and designs without a good match as unmatched
- Give a confidence score (0-100) for each match

Respond in this exact JSON format:
{{
  "matches": [
    {{
      "screenshotIndex": 0,
      "figmaIndex": 0,
      "confidence": 95,
      "reasoning": "Brief explanation of why these match"
    }}
  ],
  "unmatchedScreenshots": [1],
  "unmatchedFigmaDesigns": [2]
}}"""


def build_link_extraction_prompt(ticket_content: str, design_hosts=None) -> str:
    extra = ""
    for host in design_hosts or ():
        extra += f"- https://{host}/design/...\n"
    return LINK_EXTRACTION_PROMPT.format(ticket_content=ticket_content, extra_hosts=extra)


def build_validation_prompt(context: str = "") -> str:
    context_block = f"\nAdditional Context: {context}\n" if context else ""
    user = UX_VALIDATION_USER_PROMPT.format(context_block=context_block)
    return f"{UX_VALIDATION_SYSTEM_PROMPT}\n\n{user}"


def build_matching_prompt(screenshot_count: int, design_count: int) -> str:
    return MATCHING_PROMPT.format(
        screenshot_count=screenshot_count,
        design_count=design_count,
        total_count=screenshot_count + design_count,
        last_screenshot=screenshot_count - 1,
        first_design_image=screenshot_count + 1,
        last_design=design_count - 1,
    )
