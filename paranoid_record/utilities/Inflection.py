import re

import inflect

p = inflect.engine()


def split_camel_case(word: str) -> str:
    """Split PascalCase or camelCase into space-separated words."""
    return re.sub(r'(?<!^)(?=[A-Z])', ' ', word)


def to_snake_case(phrase: str) -> str:
    return '_'.join(word.lower() for word in phrase.split())


def singularize(phrase: str) -> str:
    singular = p.singular_noun(phrase)
    return singular if singular else phrase


def transform_word(raw_word: str) -> dict[str, str]:
    spaced = split_camel_case(raw_word).replace("_", " ")  # e.g. "Blog Post"
    singular_spaced = singularize(spaced.lower())  # e.g. "blog post"
    plural_spaced = p.plural(singular_spaced)  # e.g. "blog posts"

    return {
        "snake_singular": to_snake_case(singular_spaced),  # blog_post
        "snake_plural": to_snake_case(plural_spaced),  # blog_posts
    }


def tableize(class_name: str) -> str:
    """``BlogPost`` -> ``blog_posts``"""
    return transform_word(class_name)["snake_plural"]


def foreign_key(table_or_class: str) -> str:
    """``blog_posts`` or ``BlogPost`` -> ``blog_post_id``"""
    return f"{transform_word(table_or_class)['snake_singular']}_id"
