"""SAT topic catalog.

Topics are listed per subject in teaching order. `priority` is the
position in that order; `prerequisites` must reach 40% mastery before a
topic is recommended as a next step.
"""

from typing import NamedTuple


class TopicDefinition(NamedTuple):
    topic: str
    description: str
    priority: int
    prerequisites: tuple = ()


HEART_OF_ALGEBRA = [
    TopicDefinition("Linear Equations", "Solving one-variable equations", 1),
    TopicDefinition("Linear Inequalities", "Solving and graphing inequalities", 2, ("Linear Equations",)),
    TopicDefinition("Systems of Linear Equations", "Solving systems algebraically", 3, ("Linear Equations",)),
    TopicDefinition("Graphing Linear Equations", "Slope-intercept and point-slope forms", 4, ("Linear Equations",)),
    TopicDefinition("Linear Functions", "Function notation and interpretation", 5, ("Graphing Linear Equations",)),
    TopicDefinition("Absolute Value Equations", "Equations with absolute values", 6, ("Linear Equations",)),
]

DATA_ANALYSIS = [
    TopicDefinition("Ratios and Proportions", "Setting up and solving ratios", 7),
    TopicDefinition("Rates", "Unit rates and rate problems", 8, ("Ratios and Proportions",)),
    TopicDefinition("Percentages", "Percent increase, decrease, and applications", 9, ("Ratios and Proportions",)),
    TopicDefinition("Unit Conversions", "Converting between units", 10, ("Ratios and Proportions",)),
    TopicDefinition("Statistics - Mean, Median, Mode", "Measures of central tendency", 11),
    TopicDefinition("Statistics - Standard Deviation", "Measures of spread", 12, ("Statistics - Mean, Median, Mode",)),
    TopicDefinition("Data Interpretation - Tables", "Reading and analyzing tables", 13),
    TopicDefinition("Data Interpretation - Graphs", "Bar, line, and pie charts", 14, ("Data Interpretation - Tables",)),
    TopicDefinition("Scatterplots and Line of Best Fit", "Correlation and trend analysis", 15, ("Data Interpretation - Graphs",)),
    TopicDefinition("Probability", "Basic and conditional probability", 16, ("Percentages",)),
    TopicDefinition("Exponential Growth and Decay", "Modeling real-world growth patterns", 17, ("Percentages",)),
]

ADVANCED_MATH = [
    TopicDefinition("Quadratic Functions", "Parabolas, vertex, and roots", 18, ("Linear Functions",)),
    TopicDefinition("Quadratic Equations", "Solving by factoring, formula, completing square", 19, ("Quadratic Functions",)),
    TopicDefinition("Polynomial Operations", "Adding, subtracting, multiplying polynomials", 20, ("Linear Equations",)),
    TopicDefinition("Factoring Polynomials", "GCF, difference of squares, trinomials", 21, ("Polynomial Operations",)),
    TopicDefinition("Rational Expressions", "Simplifying and operations with fractions", 22, ("Factoring Polynomials",)),
    TopicDefinition("Rational Equations", "Solving equations with fractions", 23, ("Rational Expressions",)),
    TopicDefinition("Radicals and Rational Exponents", "Simplifying and operations with roots", 24),
    TopicDefinition("Exponential Functions", "Exponential equations and graphs", 25, ("Exponential Growth and Decay",)),
    TopicDefinition("Function Notation", "Evaluating and interpreting functions", 26, ("Linear Functions",)),
    TopicDefinition("Function Transformations", "Shifts, reflections, and stretches", 27, ("Function Notation", "Quadratic Functions")),
    TopicDefinition("Combining Functions", "Adding, composing, and inverting functions", 28, ("Function Notation",)),
]

ADDITIONAL_MATH = [
    TopicDefinition("Geometry - Angles", "Complementary, supplementary, vertical angles", 29),
    TopicDefinition("Geometry - Triangles", "Properties, similarity, and congruence", 30, ("Geometry - Angles",)),
    TopicDefinition("Geometry - Right Triangles", "Pythagorean theorem applications", 31, ("Geometry - Triangles",)),
    TopicDefinition("Geometry - Circles", "Area, circumference, arcs, and sectors", 32),
    TopicDefinition("Geometry - Area and Perimeter", "Calculating for various shapes", 33, ("Geometry - Triangles", "Geometry - Circles")),
    TopicDefinition("Geometry - Volume", "3D shapes: prisms, cylinders, spheres", 34, ("Geometry - Area and Perimeter",)),
    TopicDefinition("Coordinate Geometry", "Distance, midpoint, and slope", 35, ("Graphing Linear Equations",)),
    TopicDefinition("Complex Numbers", "Operations with imaginary numbers", 36, ("Radicals and Rational Exponents",)),
    TopicDefinition("Trigonometry - Sine, Cosine, Tangent", "Right triangle trig ratios", 37, ("Geometry - Right Triangles",)),
    TopicDefinition("Trigonometry - Unit Circle", "Radians and the unit circle", 38, ("Trigonometry - Sine, Cosine, Tangent",)),
    TopicDefinition("Trigonometry - Applications", "Real-world trig problems", 39, ("Trigonometry - Unit Circle",)),
]

MATH_TOPICS = HEART_OF_ALGEBRA + DATA_ANALYSIS + ADVANCED_MATH + ADDITIONAL_MATH

READING_TOPICS = [
    TopicDefinition("Main Idea and Central Themes", "Identifying the central argument", 1),
    TopicDefinition("Evidence-Based Reading", "Finding textual support for answers", 2, ("Main Idea and Central Themes",)),
    TopicDefinition("Inference and Implicit Meaning", "Drawing conclusions from text", 3, ("Evidence-Based Reading",)),
    TopicDefinition("Vocabulary in Context", "Understanding word meanings in passages", 4),
    TopicDefinition("Author's Purpose and Tone", "Analyzing intent and attitude", 5, ("Main Idea and Central Themes",)),
    TopicDefinition("Passage Structure and Organization", "Understanding how arguments develop", 6, ("Author's Purpose and Tone",)),
    TopicDefinition("Analyzing Arguments", "Evaluating claims and reasoning", 7, ("Passage Structure and Organization",)),
    TopicDefinition("Paired Passages", "Comparing and contrasting viewpoints", 8, ("Analyzing Arguments",)),
    TopicDefinition("Data and Graphics in Reading", "Interpreting charts within passages", 9),
    TopicDefinition("Literary Analysis", "Analyzing narrative techniques", 10, ("Main Idea and Central Themes",)),
    TopicDefinition("Historical Documents", "Founding documents and great speeches", 11, ("Vocabulary in Context",)),
    TopicDefinition("Science Passages", "Reading scientific texts and studies", 12, ("Data and Graphics in Reading",)),
]

WRITING_TOPICS = [
    TopicDefinition("Subject-Verb Agreement", "Ensuring subjects and verbs match", 1),
    TopicDefinition("Pronoun Agreement and Clarity", "Clear and correct pronoun usage", 2, ("Subject-Verb Agreement",)),
    TopicDefinition("Verb Tense and Mood", "Consistent and correct tense usage", 3, ("Subject-Verb Agreement",)),
    TopicDefinition("Punctuation - Commas", "Comma rules and applications", 4),
    TopicDefinition("Punctuation - Semicolons and Colons", "Advanced punctuation usage", 5, ("Punctuation - Commas",)),
    TopicDefinition("Punctuation - Apostrophes", "Possessives and contractions", 6),
    TopicDefinition("Sentence Structure", "Complete sentences and fragments", 7),
    TopicDefinition("Parallel Structure", "Maintaining consistent form in lists", 8, ("Sentence Structure",)),
    TopicDefinition("Modifier Placement", "Avoiding dangling and misplaced modifiers", 9, ("Sentence Structure",)),
    TopicDefinition("Transitions and Logical Flow", "Connecting ideas smoothly", 10, ("Sentence Structure",)),
    TopicDefinition("Conciseness and Wordiness", "Eliminating redundancy", 11),
    TopicDefinition("Word Choice and Precision", "Selecting the most effective words", 12, ("Conciseness and Wordiness",)),
    TopicDefinition("Sentence Combining", "Merging sentences effectively", 13, ("Sentence Structure",)),
    TopicDefinition("Organization and Development", "Logical ordering of ideas", 14, ("Transitions and Logical Flow",)),
    TopicDefinition("Effective Language Use", "Style and tone consistency", 15, ("Word Choice and Precision",)),
]

SUBJECT_TOPICS = {
    "math": MATH_TOPICS,
    "reading": READING_TOPICS,
    "writing": WRITING_TOPICS,
}


def get_subject_topics(subject: str) -> list[TopicDefinition]:
    """Catalog for a subject (case-insensitive); unknown subjects get math."""
    return SUBJECT_TOPICS.get((subject or "").lower(), MATH_TOPICS)
