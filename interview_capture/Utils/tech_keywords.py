# tech_keywords.py
# Description: Detect technology names mentioned in recognized screen text or vision analyses.
#
# Imports
import re
from typing import List, Iterable
#
#######################################################################################################################
#
# Constants

TECH_KEYWORDS = (
    'React', 'Vue', 'Angular', 'Next.js', 'Svelte', 'Node.js', 'Express',
    'Python', 'Django', 'Flask', 'FastAPI', 'JavaScript', 'TypeScript',
    'Java', 'Spring', 'C++', 'C#', '.NET', 'Go', 'Rust', 'PHP', 'Ruby', 'Swift',
    'MongoDB', 'PostgreSQL', 'MySQL', 'Redis', 'Firebase', 'Supabase',
    'Docker', 'Kubernetes', 'AWS', 'Azure', 'GCP', 'Linux',
    'TensorFlow', 'PyTorch', 'Scikit-learn', 'Pandas', 'NumPy', 'OpenCV',
    'Git', 'GitHub', 'REST', 'GraphQL', 'API', 'HTML', 'CSS', 'SASS', 'Tailwind',
    'Bootstrap', 'Material-UI', 'Machine Learning', 'Deep Learning', 'AI', 'NLP',
)

#######################################################################################################################
#
# Functions:

def _keyword_pattern(keyword: str) -> re.Pattern:
    # Word boundaries only where the keyword itself starts/ends with a word character,
    # so "C++" and ".NET" still match while "Go" does not match inside "Google".
    prefix = r'(?<!\w)' if keyword[0].isalnum() else ''
    suffix = r'(?!\w)' if keyword[-1].isalnum() else ''
    return re.compile(prefix + re.escape(keyword) + suffix, re.IGNORECASE)


_PATTERNS = {keyword: _keyword_pattern(keyword) for keyword in TECH_KEYWORDS}


def extract_technologies_from_text(text: str, keywords: Iterable[str] = TECH_KEYWORDS) -> List[str]:
    """
    Find known technology names in free text.

    Matching is case-insensitive. Results follow keyword order and contain no duplicates.
    """
    if not text:
        return []
    found: List[str] = []
    for keyword in keywords:
        pattern = _PATTERNS.get(keyword) or _keyword_pattern(keyword)
        if keyword not in found and pattern.search(text):
            found.append(keyword)
    return found

#
# End of tech_keywords.py
#######################################################################################################################
