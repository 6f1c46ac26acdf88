from typing import List, Optional

from models import Topic, CodeExample

LANGUAGE = "Java"
DEFAULT_CODE_LANGUAGE = "java"

TOPICS: List[Topic] = [
    # Basics
    Topic(id="basics_syntax", title="Syntax & Variables", category="Basics",
          description="Data types, variables, and basic structure."),
    Topic(id="control_flow", title="Control Flow", category="Basics",
          description="If/else, loops, and switch statements."),

    # OOP
    Topic(id="oop_classes", title="Classes & Objects", category="OOP",
          description="Blueprints, instances, and constructors."),
    Topic(id="oop_inheritance", title="Inheritance", category="OOP",
          description="Extending classes and the super keyword."),
    Topic(id="oop_polymorphism", title="Polymorphism", category="OOP",
          description="Overriding and overloading methods."),
    Topic(id="oop_encapsulation", title="Encapsulation", category="OOP",
          description="Access modifiers and data hiding."),

    # Core
    Topic(id="collections", title="Collections Framework", category="Core",
          description="Lists, Sets, Maps, and iteration."),
    Topic(id="exceptions", title="Exception Handling", category="Core",
          description="Try, catch, throw, and custom exceptions."),
    Topic(id="file_io", title="File I/O", category="Core",
          description="Reading and writing files."),

    # GUI & Legacy
    Topic(id="awt_basics", title="AWT Components", category="GUI & Legacy",
          description="Abstract Window Toolkit basics (Buttons, Labels)."),
    Topic(id="swing_basics", title="Swing Framework", category="GUI & Legacy",
          description="GUI components such as JFrame and JPanel."),
    Topic(id="applets", title="Java Applets", category="GUI & Legacy",
          description="Legacy browser-based Java applications."),
    Topic(id="event_handling", title="Event Handling", category="GUI & Legacy",
          description="Listeners, events, and user interaction."),

    # Advanced
    Topic(id="streams", title="Streams API", category="Advanced",
          description="Functional programming and processing data."),
    Topic(id="threads", title="Multithreading", category="Advanced",
          description="Concurrency, Runnable, and synchronization."),
    Topic(id="jdbc", title="JDBC Database", category="Advanced",
          description="Connecting Java to SQL databases."),
]

CATEGORY_ICONS = {
    "Basics": "📦",
    "OOP": "🧱",
    "Core": "📄",
    "GUI & Legacy": "🖼️",
    "Advanced": "⚙️",
}


def get_topic(topic_id: Optional[str]) -> Optional[Topic]:
    """Look up a topic by id"""
    for topic in TOPICS:
        if topic.id == topic_id:
            return topic
    return None


def categories() -> List[str]:
    """Categories in catalog order, without duplicates"""
    seen = []
    for topic in TOPICS:
        if topic.category not in seen:
            seen.append(topic.category)
    return seen


CODE_EXAMPLES: List[CodeExample] = [
    CodeExample(
        id="hello",
        title="Hello World",
        description="The classic entry point.",
        code="""public class Main {
    public static void main(String[] args) {
        // Welcome to Java!
        System.out.println("Hello, Java Tutorial!");
        System.out.println("Ready to learn?");
    }
}""",
    ),
    CodeExample(
        id="vars",
        title="Variables & Types",
        description="Storing data in variables.",
        code="""public class Main {
    public static void main(String[] args) {
        String name = "Developer";
        int coffeeCups = 3;
        double rating = 4.8;
        boolean lovesJava = true;

        System.out.println("User: " + name);
        System.out.println("Coffee Level: " + coffeeCups);
        System.out.println("Java Rating: " + rating + "/5.0");

        if (lovesJava) {
            System.out.println("Status: Happy Coding!");
        }
    }
}""",
    ),
    CodeExample(
        id="swing_simple",
        title="Swing GUI",
        description="Creating a simple window.",
        code="""import javax.swing.*;

public class Main {
    public static void main(String[] args) {
        // A desktop JVM would open a window here
        JFrame frame = new JFrame("My First App");
        frame.setSize(300, 200);

        JLabel label = new JLabel("Hello Swing!", SwingConstants.CENTER);
        frame.add(label);
        frame.setVisible(true);

        System.out.println("Window 'My First App' created.");
        System.out.println("Size: 300x200");
    }
}""",
    ),
    CodeExample(
        id="conditionals",
        title="Conditionals (If/Else)",
        description="Making decisions in code.",
        code="""public class Main {
    public static void main(String[] args) {
        int score = 85;

        System.out.println("Score: " + score);

        if (score >= 90) {
            System.out.println("Grade: A - Excellent!");
        } else if (score >= 80) {
            System.out.println("Grade: B - Good job.");
        } else if (score >= 70) {
            System.out.println("Grade: C - Keep trying.");
        } else {
            System.out.println("Grade: F - Study more!");
        }
    }
}""",
    ),
    CodeExample(
        id="loops",
        title="Loops (For & While)",
        description="Repeating actions efficiently.",
        code="""public class Main {
    public static void main(String[] args) {
        System.out.println("--- Countdown ---");
        for (int i = 5; i > 0; i--) {
            System.out.println("T-minus " + i);
        }
        System.out.println("Liftoff!");

        System.out.println("\\n--- Squad Members ---");
        String[] squad = {"Alex", "Sam", "Jordan"};
        for (String member : squad) {
            System.out.println("Member: " + member);
        }
    }
}""",
    ),
    CodeExample(
        id="methods",
        title="Methods",
        description="Reusable blocks of code.",
        code="""public class Main {
    public static void main(String[] args) {
        greet("Student");

        int result = add(5, 10);
        System.out.println("5 + 10 = " + result);

        int squared = square(6);
        System.out.println("6 squared = " + squared);
    }

    public static void greet(String name) {
        System.out.println("Hello, " + name + "!");
    }

    public static int add(int a, int b) {
        return a + b;
    }

    public static int square(int n) {
        return n * n;
    }
}""",
    ),
]


def get_example(example_id: Optional[str]) -> Optional[CodeExample]:
    for example in CODE_EXAMPLES:
        if example.id == example_id:
            return example
    return None
