"""
Content Blocks for BeginAI Platform
Closed registry of lesson block types, their default payloads and validation
"""

from datetime import datetime, timezone
import copy
import random
import string
import time

from utils.error_handler import ValidationError

# Block type -> (default content, required content fields)
BLOCK_TYPES = {
    'heading': (
        {'text': 'Click to edit heading', 'level': 2},
        ['text']
    ),
    'paragraph': (
        {'text': 'Double-click to edit this text. You can write your lesson content here...'},
        ['text']
    ),
    'image': (
        {'src': '', 'alt': 'Image', 'caption': 'Add caption...', 'fileName': ''},
        ['src']
    ),
    'video': (
        {'src': '', 'title': 'Video Title', 'description': 'Video description...', 'fileName': ''},
        ['src']
    ),
    'podcast': (
        {'audioSrc': '', 'title': 'Podcast Episode', 'description': 'Episode description...',
         'duration': '', 'fileName': ''},
        ['audioSrc']
    ),
    'quiz': (
        {
            'question': 'What is the correct answer?',
            'options': ['Option A', 'Option B', 'Option C', 'Option D'],
            'correctAnswer': 0,
            'explanation': 'Explanation for the correct answer...'
        },
        ['question', 'options', 'correctAnswer']
    ),
    'code-sandbox': (
        {
            'language': 'javascript',
            'code': '// Write your code here\nconsole.log("Hello World!");',
            'title': 'Code Exercise',
            'instructions': 'Complete the code below:'
        },
        ['language', 'code']
    ),
    'checkbox': (
        {'items': [], 'title': 'Checklist'},
        ['items']
    ),
    'fill-blank': (
        {
            'text': 'Complete this sentence: The sky is {{blue|colorful}} and the grass is {{green|lush}}.',
            'title': 'Fill in the Blanks'
        },
        ['text']
    ),
    'callout': (
        {'text': 'Important note...', 'variant': 'info'},
        ['text']
    ),
}

# Media block type -> (URL field, Storage folder)
MEDIA_FIELDS = {
    'image': ('src', 'images'),
    'video': ('src', 'videos'),
    'podcast': ('audioSrc', 'audio'),
}

CONTENT_TIERS = ('free', 'premium')


def _random_suffix(length=9):
    return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))


def generate_block_id():
    return f"block_{int(time.time() * 1000)}_{_random_suffix()}"


def generate_page_id():
    return f"page_{int(time.time() * 1000)}_{_random_suffix()}"


def create_block(block_type):
    """
    Create a new block of the given type with its default content
    """
    if block_type not in BLOCK_TYPES:
        raise ValidationError(f"Unknown block type: {block_type}", field='type')

    content = copy.deepcopy(BLOCK_TYPES[block_type][0])
    if block_type == 'checkbox':
        content['items'] = [
            {'id': generate_block_id(), 'text': 'Check this item', 'checked': False},
            {'id': generate_block_id(), 'text': 'Another item', 'checked': False}
        ]

    now = datetime.now(timezone.utc).isoformat()
    return {
        'id': generate_block_id(),
        'type': block_type,
        'content': content,
        'metadata': {
            'created': now,
            'updated': now
        }
    }


def create_page(title='Introduction'):
    return {
        'id': generate_page_id(),
        'title': title,
        'blocks': [],
        'created': datetime.now(timezone.utc).isoformat()
    }


def validate_block(block):
    """
    Validate a block's type and payload. Returns a list of error messages.
    """
    errors = []
    if not isinstance(block, dict):
        return ['Block must be an object']

    block_type = block.get('type')
    if block_type not in BLOCK_TYPES:
        return [f"Unknown block type: {block_type}"]

    content = block.get('content')
    if not isinstance(content, dict):
        return [f"Block {block.get('id')} has no content"]

    for field in BLOCK_TYPES[block_type][1]:
        if field not in content or content[field] is None:
            errors.append(f"Block {block.get('id')} ({block_type}) is missing '{field}'")

    if block_type == 'quiz' and not errors:
        options = content.get('options') or []
        answer = content.get('correctAnswer')
        if not isinstance(answer, int) or not 0 <= answer < len(options):
            errors.append(f"Block {block.get('id')} (quiz) has an invalid correctAnswer")

    return errors


def _tier_pages(tier_content):
    # Tier content is either {'pages': [...]} or the legacy flat list of pages
    if not tier_content:
        return []
    if isinstance(tier_content, dict):
        return tier_content.get('pages') or []
    if isinstance(tier_content, list):
        return tier_content
    return []


def iter_blocks(content_versions):
    """
    Yield (tier, page_index, block) for every block in both content tiers
    """
    for tier in CONTENT_TIERS:
        tier_content = (content_versions or {}).get(tier)
        for page_index, page in enumerate(_tier_pages(tier_content)):
            if not isinstance(page, dict):
                continue
            for block in page.get('blocks') or []:
                yield tier, page_index, block


def media_field(block):
    """Name of the URL field holding the block's media, or None"""
    entry = MEDIA_FIELDS.get(block.get('type'))
    return entry[0] if entry else None


def media_folder(block_type):
    entry = MEDIA_FIELDS.get(block_type)
    if not entry:
        raise ValidationError(f"Block type {block_type} does not carry media", field='type')
    return entry[1]


def validate_content_versions(content_versions):
    errors = []
    for tier, page_index, block in iter_blocks(content_versions):
        for error in validate_block(block):
            errors.append(f"{tier} page {page_index + 1}: {error}")
    return errors
