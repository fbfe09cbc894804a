"""
StudioGen Backend - Prompt Construction
=========================================

Pure functions turning the studio UI selections into model instructions.

Studio image routing:
    industry == food-beverage and prompt mentions a drink → hero beverage shot
    industry == food-beverage otherwise                   → editorial food photo
    any other industry                                    → commercial product photo

Unified backgrounds are always 9:16 and never contain the product or text.
"""

from typing import Tuple

from studiogen.schemas.generate import BrandSettings, FormatValue, StudioImageRequest

FOOD_BEVERAGE_INDUSTRY = "food-beverage"

# Matched as lower-case substrings of the user's product description
BEVERAGE_KEYWORDS: Tuple[str, ...] = (
    "tea",
    "drink",
    "beverage",
    "coffee",
    "juice",
    "soda",
    "trà",
    "cà phê",
    "nước ép",
    "milk tea",
    "trà sữa",
    "latte",
    "cappuccino",
    "smoothie",
    "sinh tố",
)
MILK_TEA_KEYWORDS: Tuple[str, ...] = ("milk tea", "trà sữa")

MILK_TEA_CONSTRAINT = (
    "Crucially, as this is a milk tea, do NOT include any lemons or citrus fruit as decoration."
)

FORMAT_DESCRIPTIONS = {
    "1:1": "a perfect square image (1:1 ratio)",
    "16:9": "a horizontal widescreen banner image (16:9 ratio)",
    "9:16": "a vertical tall poster image (9:16 ratio)",
}

BACKGROUND_REMOVAL_PROMPT = """You are an expert photo editing AI specializing in background removal.
Your task is to perfectly isolate the main subject from its background in the provided image.

**CRITICAL INSTRUCTIONS:**
1.  **Identify and Isolate:** Precisely identify the main subject(s) of the image.
2.  **Remove Background:** Completely remove the existing background.
3.  **Output Format:** The output MUST be a PNG image.
4.  **Transparency:** The new background MUST be fully transparent.
5.  **No Additions:** Do NOT add any new elements, shadows, reflections, borders, or effects.
6.  **Preserve Subject:** Do NOT alter the subject in any way (color, shape, texture).

The final result should be only the main subject on a transparent background."""

COLOR_SUGGESTION_PROMPT = """Analyze this image and suggest 5 distinct text colors that would look good overlaid on it.

For each color, provide:
1. A descriptive name
2. The hex color value (#RRGGBB)

Return ONLY a JSON array in this exact format, with no other text:
[
  {"id": "1", "name": "Color Name", "value": "#HEXCODE", "isGradient": false}
]

Consider contrast, readability, and aesthetic harmony with the image."""


# ── Classification ────────────────────────────────────────────────────────
def is_beverage(prompt: str) -> bool:
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in BEVERAGE_KEYWORDS)


def is_milk_tea(prompt: str) -> bool:
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in MILK_TEA_KEYWORDS)


# ── Building blocks ───────────────────────────────────────────────────────
def format_instruction(value: FormatValue) -> str:
    description = FORMAT_DESCRIPTIONS[value]
    return (
        f"**CRITICAL DIRECTIVE: The final output image MUST be {description}. "
        "This is the most important, non-negotiable rule. "
        "All elements must be composed within this frame from the start.**"
    )


def core_instructions(value: FormatValue) -> str:
    return f"""
**PRODUCT REALISM (NON-NEGOTIABLE):** The user-provided product image is a REAL PHOTOGRAPH. You MUST place it into the scene while preserving 100% of its original photographic details, textures, lighting, and reflections. It must look like it was photographed within the scene you create, not like a sticker placed on top. Maintain its authentic look at all costs.

**COMPOSITION:**
- Create the scene FIRST based on the user's background style.
- Place the REAL product photo into the scene as the central hero element.
- Add subtle, realistic props, lighting, and soft shadows that complement the product and scene.
- **DO NOT add any text, watermarks, or annotations.**
- **FINAL CHECK: The aspect ratio must strictly be {value}.**"""


# ── Prompts ───────────────────────────────────────────────────────────────
def background_removal_prompt() -> str:
    return BACKGROUND_REMOVAL_PROMPT


def studio_prompt(request: StudioImageRequest) -> str:
    """Instruction text for compositing the product photo into a studio scene."""
    product = request.prompt
    ratio = request.format.value
    core = core_instructions(ratio)
    style = request.background.prompt

    if request.industry.id == FOOD_BEVERAGE_INDUSTRY and is_beverage(product):
        milk_tea = MILK_TEA_CONSTRAINT if is_milk_tea(product) else ""
        return f"""A high-end editorial-style advertising photo featuring a hero beverage ("{product}") presented in a transparent cup or glass with logo, placed centrally as the main focus.
The drink should look realistic and visually rich, with vibrant colors, glossy ice cubes, and visible toppings or garnishes (such as pearls, fruit slices, cream foam, or herbs) depending on the drink type.
The background must strictly adhere to the user's selected aspect ratio ({ratio}) and be styled as a studio lifestyle shoot using this specific style: "{style}".
Use warm, directional lighting (sunset glow or soft studio light) to create gentle shadows and depth. Add subtle artistic touches like condensation droplets on the cup and a few garnish or topping elements naturally scattered nearby for realism.
Surrounding space should be minimalist yet refined, possibly including props like linen napkins, ceramic plates, green leaves, or softly blurred background objects.
The overall composition should feel artistic, luxurious, and editorial-worthy, suitable for international magazines, café posters, or social media campaigns.
{milk_tea}
{core}"""

    if request.industry.id == FOOD_BEVERAGE_INDUSTRY:
        return f"""{format_instruction(ratio)}

You are a high-end editorial food and beverage photographer. Your task is to create an ultra-realistic, editorial-style advertising photo.

**HERO SUBJECT:** The user has provided a real photo of a product, which is a "{product}".
{core}

**BACKGROUND & SCENE:** The background must be styled like a professional studio lifestyle shoot. Use the user-selected style: "{style}".
"""

    return f"""{format_instruction(ratio)}

You are a world-class professional product photographer. Your task is to create a stunning, high-quality advertisement poster for a "{product}" in the {request.industry.name} category.
{core}

**BACKGROUND & SCENE:** Create a hyper-realistic professional studio scene based on this description: "{style}".
"""


def unified_background_prompt(brand: BrandSettings) -> str:
    """Product-free 9:16 background in the brand's colors."""
    primary = brand.colors.primary
    secondary = brand.colors.secondary

    if brand.industry.id == FOOD_BEVERAGE_INDUSTRY:
        return f"""Create the background scene for a high-end editorial-style advertising photo. The scene should be set up to feature a hero beverage as the main focus, but DO NOT include the beverage itself.

The background must strictly follow a vertical ratio (9:16) and be styled like a studio lifestyle shoot, using natural textures such as stone, linen fabric, or wood surfaces.

Use warm, directional lighting (sunset glow or soft studio light) to create gentle shadows and depth. Add subtle artistic touches like condensation droplets and a few garnish elements (like mint leaves or small berries) naturally scattered nearby for realism.

The surrounding space should be minimalist yet refined, possibly including props like a stylish magazine cover, ceramic plates, or softly blurred background objects.

The color palette should be warm neutrals (soft gold, beige, amber tones) evoking an elegant, modern, premium lifestyle aesthetic. The brand's primary color ({primary}) and secondary color ({secondary}) should be subtly hinted at in the lighting or props.

The final composition should feel artistic, luxurious, and editorial-worthy, suitable for international magazines, café posters, or social media campaigns. The most important rule is: Generate ONLY the background, leaving the central space empty and ready for a product."""

    return f"""Generate a high-quality, professional studio background suitable for a {brand.industry.name} product.
This background MUST be in a 9:16 vertical poster format.
The branding details are as follows:
- Brand Personality/Model: {brand.model.prompt}
- Brand Colors: The primary color is {primary} and the secondary color is {secondary}. These colors should be subtly integrated into the lighting, gradient, or scene elements.

The final image should be clean, professional, and visually appealing, leaving ample space for a product to be placed in the foreground. Do not include any text, products, or distracting elements. Focus on creating a beautiful, branded environment."""


def color_suggestion_prompt() -> str:
    return COLOR_SUGGESTION_PROMPT
