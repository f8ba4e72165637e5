"""
Prompt Composer - Builds the message list sent to a provider for each mode
"""

from __future__ import annotations

from models.generation import ChatMessage, GenerationMode, GenerationRequest

FRONTEND_PROMPT = """You are an expert frontend developer. Generate a single, complete HTML file with embedded CSS and JavaScript.

REQUIREMENTS:
- ONLY output HTML, CSS, and JavaScript in a SINGLE HTML file
- Use TailwindCSS via CDN: <script src="https://cdn.tailwindcss.com"></script>
- For icons, use a CDN library (Heroicons, Lucide, or Font Awesome)
- Make the design modern, responsive, and beautiful
- Include proper meta tags and viewport settings
- Output starts with <!DOCTYPE html> and ends with </html>
- NO explanations, ONLY the HTML code"""

FULLSTACK_PROMPT = """You are an expert fullstack developer. Generate a complete web application with both frontend and backend.

OUTPUT FORMAT - Use one code block per file, tagged language:filename:
```html:index.html
<!-- Frontend HTML code -->
```

```css:styles.css
/* Optional separate CSS */
```

```javascript:app.js
// Frontend JavaScript
```

```javascript:server.js
// Backend Node.js/Express code
```

```json:package.json
{
  "name": "app",
  "dependencies": {}
}
```

REQUIREMENTS:
- Generate complete, working code for both frontend and backend
- Use modern practices: ES modules, async/await, proper error handling
- Backend: Node.js with Express, include all necessary routes
- Frontend: Modern HTML5, TailwindCSS, vanilla JS or specify framework
- Include package.json with all dependencies
- Add helpful comments explaining key functionality
- Make it production-ready with proper security practices"""

DESIGN_CLONE_PROMPT = """You are an expert at recreating web designs. Analyze the provided website design and recreate it as a pixel-perfect HTML/CSS implementation.

REQUIREMENTS:
- Match the layout, colors, typography, and spacing exactly
- Use TailwindCSS for styling where possible
- Include all visual elements, buttons, forms, etc.
- Make it responsive if the original is responsive
- Use placeholder images from picsum.photos or similar
- Output a single complete HTML file
- NO explanations, ONLY the HTML code"""

SYSTEM_PROMPTS: dict[GenerationMode, str] = {
    GenerationMode.FRONTEND: FRONTEND_PROMPT,
    GenerationMode.FULLSTACK: FULLSTACK_PROMPT,
    GenerationMode.DESIGN_CLONE: DESIGN_CLONE_PROMPT,
}


def build_clone_prompt(design_url: str, instructions: str) -> str:
    return f"Clone this website design: {design_url}\n\nAdditional instructions: {instructions}"


def build_current_code(html: str) -> str:
    return f"Current code:\n```html\n{html}\n```"


def compose(request: GenerationRequest) -> list[ChatMessage]:
    """Build the ordered message list for a generation request.

    Design clones are single-shot: the URL and instructions go in one user
    turn and prior turns are dropped. Otherwise the previous prompt and the
    current artifact (as an assistant turn) precede the new prompt.
    """
    mode = request.mode
    messages = [ChatMessage(role="system", content=SYSTEM_PROMPTS[mode])]

    design_url = (request.designUrl or "").strip()
    if mode == GenerationMode.DESIGN_CLONE and design_url:
        messages.append(ChatMessage(role="user", content=build_clone_prompt(design_url, request.prompt)))
        return messages

    if request.previousPrompt and request.previousPrompt.strip():
        messages.append(ChatMessage(role="user", content=request.previousPrompt))

    if request.html and request.html.strip():
        messages.append(ChatMessage(role="assistant", content=build_current_code(request.html)))

    messages.append(ChatMessage(role="user", content=request.prompt))
    return messages
