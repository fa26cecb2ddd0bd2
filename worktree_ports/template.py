"""
Port requirement discovery from env templates.

A template such as ``.env.template`` references ports as ``${NAME_PORT}``.
The referenced names, in order of first appearance, form the port
requirement of a worktree.
"""

import logging
import re
from pathlib import Path
from typing import List, Union

from .errors import TemplateError
from .plan import dedupe_requirement


logger = logging.getLogger(__name__)


class RequirementParser:
    """Extract port variable names from an env template."""
    
    def __init__(self, suffix: str = "_PORT"):
        """
        Initialize the parser.
        
        Args:
            suffix: Suffix a variable name must end with to count as a port
        """
        self.suffix = suffix
        self.pattern = re.compile(r"\$\{([A-Z_]*" + re.escape(suffix) + r")\}")
    
    def parse_text(self, text: str) -> List[str]:
        """
        Extract the port requirement from template text.
        
        Args:
            text: Template content
        
        Returns:
            Distinct port names in order of first appearance
        """
        return dedupe_requirement(self.pattern.findall(text))
    
    def parse_requirement(self, template_path: Union[str, Path]) -> List[str]:
        """
        Extract the port requirement from a template file.
        
        Args:
            template_path: Path to the template
        
        Returns:
            Distinct port names in order of first appearance
        
        Raises:
            TemplateError: If the template does not exist or cannot be read
        """
        path = Path(template_path)
        if not path.is_file():
            raise TemplateError("Template not found", path=str(path))
        
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"Cannot read template: {e}", path=str(path))
        
        names = self.parse_text(text)
        logger.debug(f"Discovered {len(names)} port variables in {path}: {names}")
        return names
