"""
HTML clean-up for generated article bodies.
"""
from bs4 import BeautifulSoup

UNSAFE_TAGS = ['script', 'style', 'iframe', 'object', 'embed', 'form', 'link', 'meta']
URL_ATTRIBUTES = ('href', 'src')


def sanitize_html(content: str) -> str:
    """
    Strip active content from model-written HTML, keeping the markup the site
    renders (headings, paragraphs, lists, links).

    Args:
        content: HTML fragment

    Returns:
        Cleaned HTML fragment
    """
    if not content:
        return ''
    soup = BeautifulSoup(content, 'html.parser')

    for elem in soup.find_all(UNSAFE_TAGS):
        elem.decompose()

    for elem in soup.find_all(True):
        for attr in list(elem.attrs):
            if attr.lower().startswith('on'):
                del elem.attrs[attr]
            elif attr.lower() in URL_ATTRIBUTES:
                value = str(elem.attrs[attr]).strip().lower()
                if value.startswith('javascript:'):
                    del elem.attrs[attr]

    return str(soup).strip()


def html_to_text(content: str) -> str:
    """Visible text of an HTML fragment, whitespace-normalized."""
    if not content:
        return ''
    return ' '.join(BeautifulSoup(content, 'html.parser').get_text(separator=' ').split())
