"""Bundled sample articles for seeding an empty index without network access."""
from typing import List

from newsbot.sources.models import ArticleRecord

SAMPLE_ARTICLES: List[ArticleRecord] = [
    ArticleRecord(
        id="sample_1",
        title="Apple Unveils Revolutionary AI Chip for Next-Generation Devices",
        content=(
            "Apple Inc. announced today the launch of its most advanced artificial "
            "intelligence processor, designed to power the next generation of consumer "
            "electronics. The new chip, built on cutting-edge 3nm technology, promises "
            "unprecedented performance improvements for machine learning tasks. Industry "
            "experts predict this development will significantly impact the competitive "
            "landscape in mobile computing. The chip features dedicated neural processing "
            "units and advanced power management systems."
        ),
        url="https://example.com/apple-ai-chip",
        publish_date="2024-01-15T10:30:00Z",
        source="sample",
    ),
    ArticleRecord(
        id="sample_2",
        title="Climate Change Summit Reaches Historic Agreement on Carbon Emissions",
        content=(
            "World leaders at the Global Climate Summit have reached a landmark agreement "
            "to reduce carbon emissions by 50% over the next decade. The comprehensive plan "
            "includes investments in renewable energy infrastructure, carbon capture "
            "technologies, and sustainable transportation systems. Environmental scientists "
            "hailed the agreement as a crucial step toward limiting global temperature rise. "
            "The implementation will require coordinated efforts across 195 participating "
            "nations."
        ),
        url="https://example.com/climate-summit",
        publish_date="2024-01-14T15:45:00Z",
        source="sample",
    ),
    ArticleRecord(
        id="sample_3",
        title="Major Breakthrough in Quantum Computing Achieved by Research Team",
        content=(
            "Scientists at the National Quantum Research Institute have demonstrated a "
            "quantum computer capable of solving complex optimization problems 1000 times "
            "faster than traditional supercomputers. The breakthrough involves a new error "
            "correction method that maintains quantum coherence for extended periods. This "
            "advancement could revolutionize fields including drug discovery, financial "
            "modeling, and cryptography. The research team plans to scale the system for "
            "commercial applications within five years."
        ),
        url="https://example.com/quantum-breakthrough",
        publish_date="2024-01-13T09:15:00Z",
        source="sample",
    ),
    ArticleRecord(
        id="sample_4",
        title="Electric Vehicle Sales Surge 300% as Battery Technology Improves",
        content=(
            "The electric vehicle market experienced unprecedented growth this quarter, "
            "with sales increasing by 300% compared to the same period last year. Advanced "
            "lithium-ion battery technology has extended driving ranges while reducing "
            "charging times significantly. Major automakers are accelerating their "
            "transition plans to fully electric lineups. Government incentives and "
            "expanding charging infrastructure continue to drive consumer adoption of "
            "sustainable transportation options."
        ),
        url="https://example.com/ev-sales-surge",
        publish_date="2024-01-12T14:20:00Z",
        source="sample",
    ),
    ArticleRecord(
        id="sample_5",
        title="Breakthrough Gene Therapy Shows Promise for Rare Genetic Disorders",
        content=(
            "Clinical trials of an innovative gene therapy treatment have shown remarkable "
            "success in treating patients with rare genetic disorders. The therapy uses "
            "modified viruses to deliver healthy copies of genes directly to affected cells. "
            "Initial results indicate significant improvement in patient symptoms with "
            "minimal side effects. Regulatory approval could make this life-changing "
            "treatment available to thousands of patients worldwide within two years."
        ),
        url="https://example.com/gene-therapy",
        publish_date="2024-01-11T11:30:00Z",
        source="sample",
    ),
]


def sample_records() -> List[ArticleRecord]:
    """Copies of the sample articles."""
    return [article.model_copy() for article in SAMPLE_ARTICLES]
